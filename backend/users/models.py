from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    STAFF = "staff", "Staff"
    OWNER = "owner", "Owner"
    SUPERADMIN = "superadmin", "Super Admin"


STAFF_ROLES = (UserRole.STAFF, UserRole.OWNER, UserRole.SUPERADMIN)


class User(AbstractUser):
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.CUSTOMER,
    )
    phone = models.CharField(max_length=30, blank=True, default="")

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"

    @property
    def is_platform_admin(self) -> bool:
        return self.is_superuser or self.role == UserRole.SUPERADMIN

    @property
    def is_cafe_staff(self) -> bool:
        return self.is_superuser or self.role in STAFF_ROLES
