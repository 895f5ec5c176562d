from django.db import models
from django.db.models import Q


class RegistryRecord(models.Model):
    """One taxpayer entry from the DGII RNC registry file."""
    rnc = models.CharField(max_length=20, db_index=True)
    legal_name = models.CharField(max_length=255)
    economic_activity = models.CharField(max_length=255, blank=True)
    # Kept as published; DGII mixes date formats in this column
    activity_start_date = models.CharField(max_length=32, blank=True)
    status = models.CharField(max_length=32, blank=True)
    payment_regime = models.CharField(max_length=32, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['legal_name'], name='rnc_legal_name_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(rnc='') & ~Q(legal_name=''),
                name='rnc_record_required_fields',
            ),
        ]

    def __str__(self):
        return f"{self.rnc} - {self.legal_name}"
