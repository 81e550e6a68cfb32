from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser, ParentStudentRelation


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    model = CustomUser
    list_display = ('email', 'role', 'first_name', 'last_name', 'phone_number', 'is_staff', 'is_active', 'created_at')
    list_filter = ('role', 'is_staff', 'is_active', 'preferred_language')

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Informations personnelles', {'fields': ('first_name', 'last_name', 'phone_number', 'preferred_language')}),
        ('Rôle et droits', {'fields': ('role', 'is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Dates', {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'role', 'password1', 'password2', 'is_staff', 'is_active')
        }),
    )

    search_fields = ('email', 'first_name', 'last_name', 'phone_number')
    ordering = ('-created_at',)


@admin.register(ParentStudentRelation)
class ParentStudentRelationAdmin(admin.ModelAdmin):
    list_display = ('parent', 'student', 'relationship', 'is_primary', 'can_track_location', 'created_at')
    list_filter = ('relationship', 'can_track_location')
    search_fields = ('parent__email', 'student__email')
    raw_id_fields = ('parent', 'student')
