import bulletins.models
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BulletinTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150, verbose_name='nom')),
                ('description', models.TextField(blank=True, default='')),
                ('template_type', models.CharField(choices=[('custom', 'Personnalisé'), ('default', 'Par défaut'), ('shared', 'Partagé')], default='custom', max_length=10)),
                ('is_active', models.BooleanField(default=True)),
                ('is_default', models.BooleanField(default=False)),
                ('version', models.PositiveIntegerField(default=1)),
                ('page_format', models.CharField(choices=[('A4', 'A4'), ('A3', 'A3'), ('Letter', 'Letter')], default='A4', max_length=10)),
                ('orientation', models.CharField(choices=[('portrait', 'Portrait'), ('landscape', 'Paysage')], default='portrait', max_length=10)),
                ('margins', models.JSONField(default=bulletins.models.default_margins)),
                ('elements', models.JSONField(default=list)),
                ('global_styles', models.JSONField(default=bulletins.models.default_global_styles)),
                ('usage_count', models.PositiveIntegerField(default=0)),
                ('last_used_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bulletin_templates', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bulletins_bulletintemplates', to='tenants.school', verbose_name='École')),
            ],
            options={
                'verbose_name': 'modèle de bulletin',
                'verbose_name_plural': 'modèles de bulletin',
                'ordering': ['-is_default', 'name'],
                'indexes': [models.Index(fields=['school', 'is_default'], name='template_school_default_idx')],
            },
        ),
        migrations.CreateModel(
            name='BulletinTemplateVersion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveIntegerField()),
                ('elements', models.JSONField(default=list)),
                ('global_styles', models.JSONField(default=dict)),
                ('change_note', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='versions', to='bulletins.bulletintemplate')),
            ],
            options={
                'verbose_name': 'version de modèle',
                'verbose_name_plural': 'versions de modèle',
                'ordering': ['-version'],
                'unique_together': {('template', 'version')},
            },
        ),
    ]
