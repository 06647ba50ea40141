from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with role selection"""
    ROLE_FAMILY = 'family'
    ROLE_CAREGIVER = 'caregiver'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_FAMILY, 'Family'),
        (ROLE_CAREGIVER, 'Caregiver'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    # Role & basic info
    role = models.CharField(max_length=10, choices=ROLE_CHOICES)
    phone_number = models.CharField(max_length=20, blank=True)
    profile_picture = models.ImageField(upload_to='profile_pictures/', null=True, blank=True)
    completed_services = models.IntegerField(default=0)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def display_name(self) -> str:
        full_name = self.get_full_name().strip()
        return full_name or self.username
