from django.contrib import admin

from .models import School, SchoolMembership


class SchoolMembershipInline(admin.TabularInline):
    model = SchoolMembership
    extra = 0
    readonly_fields = ('joined_at', 'updated_at')
    raw_id_fields = ('user',)


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'status', 'school_type', 'education_system', 'city', 'created_at')
    list_filter = ('status', 'school_type', 'education_system', 'geolocation_enabled')
    search_fields = ('name', 'slug', 'owner__email', 'city')
    readonly_fields = ('id', 'created_at', 'updated_at')
    raw_id_fields = ('owner',)
    prepopulated_fields = {'slug': ('name',)}
    inlines = [SchoolMembershipInline]


@admin.register(SchoolMembership)
class SchoolMembershipAdmin(admin.ModelAdmin):
    list_display = ('user', 'school', 'role', 'is_active', 'joined_at')
    list_filter = ('role', 'is_active')
    search_fields = ('user__email', 'school__name')
    raw_id_fields = ('user', 'school')
