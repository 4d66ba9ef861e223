from django.db import models


class SettingKey(models.TextChoices):
    EXCHANGE_RATE = "exchange_rate", "USD to AFN exchange rate"


class SystemSetting(models.Model):
    key = models.CharField(max_length=64, primary_key=True, choices=SettingKey.choices)
    value = models.CharField(max_length=255)
    updated_by = models.ForeignKey("accounts.User", null=True, blank=True, on_delete=models.SET_NULL)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self):
        return f"{self.key}={self.value}"
