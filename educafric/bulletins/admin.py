from django.contrib import admin

from .models import BulletinTemplate, BulletinTemplateVersion


class BulletinTemplateVersionInline(admin.TabularInline):
    model = BulletinTemplateVersion
    extra = 0
    fields = ('version', 'change_note', 'created_by', 'created_at')
    readonly_fields = fields
    can_delete = False


@admin.register(BulletinTemplate)
class BulletinTemplateAdmin(admin.ModelAdmin):
    list_display = ('name', 'school', 'template_type', 'version', 'is_default', 'is_active', 'usage_count')
    list_filter = ('template_type', 'is_default', 'is_active', 'school')
    search_fields = ('name', 'school__name')
    raw_id_fields = ('created_by',)
    readonly_fields = ('usage_count', 'last_used_at', 'created_at', 'updated_at')
    inlines = [BulletinTemplateVersionInline]
