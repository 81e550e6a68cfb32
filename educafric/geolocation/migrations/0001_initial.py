import django.core.validators
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
            name='TrackingDevice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, verbose_name='nom')),
                ('device_type', models.CharField(choices=[('smartphone', 'Smartphone'), ('smartwatch', 'Montre connectée'), ('tablet', 'Tablette'), ('gps_tracker', 'Traceur GPS')], default='smartphone', max_length=20, verbose_name='type')),
                ('is_active', models.BooleanField(default=True, verbose_name='actif')),
                ('current_latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True, validators=[django.core.validators.MinValueValidator(-90), django.core.validators.MaxValueValidator(90)])),
                ('current_longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True, validators=[django.core.validators.MinValueValidator(-180), django.core.validators.MaxValueValidator(180)])),
                ('location_accuracy', models.FloatField(blank=True, help_text='Précision en mètres', null=True)),
                ('current_address', models.CharField(blank=True, default='', max_length=255)),
                ('battery_level', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MaxValueValidator(100)])),
                ('last_seen', models.DateTimeField(blank=True, null=True)),
                ('tracking_settings', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='owned_devices', to=settings.AUTH_USER_MODEL, verbose_name='propriétaire')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='geolocation_trackingdevices', to='tenants.school', verbose_name='École')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tracking_devices', to=settings.AUTH_USER_MODEL, verbose_name='élève')),
            ],
            options={
                'verbose_name': 'appareil de suivi',
                'verbose_name_plural': 'appareils de suivi',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['student', 'is_active'], name='device_student_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='SafeZone',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, verbose_name='nom')),
                ('zone_type', models.CharField(choices=[('home', 'Domicile'), ('school', 'École'), ('relative', 'Famille'), ('activity', 'Activité')], default='home', max_length=10, verbose_name='type')),
                ('latitude', models.DecimalField(decimal_places=6, max_digits=9, validators=[django.core.validators.MinValueValidator(-90), django.core.validators.MaxValueValidator(90)])),
                ('longitude', models.DecimalField(decimal_places=6, max_digits=9, validators=[django.core.validators.MinValueValidator(-180), django.core.validators.MaxValueValidator(180)])),
                ('radius_meters', models.PositiveIntegerField(default=200, validators=[django.core.validators.MinValueValidator(10), django.core.validators.MaxValueValidator(50000)], verbose_name='rayon (m)')),
                ('is_active', models.BooleanField(default=True, verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_safe_zones', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='geolocation_safezones', to='tenants.school', verbose_name='École')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='safe_zones', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'zone de sécurité',
                'verbose_name_plural': 'zones de sécurité',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['student', 'is_active'], name='zone_student_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='LocationPing',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('accuracy', models.FloatField(blank=True, null=True)),
                ('address', models.CharField(blank=True, default='', max_length=255)),
                ('battery_level', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('speed', models.FloatField(blank=True, help_text='km/h', null=True)),
                ('recorded_at', models.DateTimeField(db_index=True)),
                ('device', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pings', to='geolocation.trackingdevice')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='location_pings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'position',
                'verbose_name_plural': 'positions',
                'ordering': ['-recorded_at'],
                'indexes': [models.Index(fields=['device', '-recorded_at'], name='ping_device_recorded_idx')],
            },
        ),
        migrations.CreateModel(
            name='StudentZoneState',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_outside', models.BooleanField(default=False)),
                ('last_exit_at', models.DateTimeField(blank=True, null=True)),
                ('consecutive_outside_readings', models.PositiveIntegerField(default=0)),
                ('last_extended_alert_at', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('current_zone', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='geolocation.safezone')),
                ('student', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='zone_state', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'état de zone',
                'verbose_name_plural': 'états de zone',
            },
        ),
        migrations.CreateModel(
            name='GeolocationAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('alert_type', models.CharField(choices=[('zone_exit', 'Sortie de zone'), ('zone_entry', 'Entrée en zone'), ('out_of_all_zones', 'Hors de toutes les zones'), ('extended_absence', 'Absence prolongée'), ('low_battery', 'Batterie faible'), ('emergency', 'Urgence')], max_length=20)),
                ('severity', models.CharField(choices=[('low', 'Basse'), ('medium', 'Moyenne'), ('high', 'Haute'), ('critical', 'Critique')], default='medium', max_length=10)),
                ('message', models.TextField()),
                ('latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('minutes_outside', models.PositiveIntegerField(blank=True, null=True)),
                ('is_read', models.BooleanField(default=False)),
                ('is_resolved', models.BooleanField(default=False)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('device', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='alerts', to='geolocation.trackingdevice')),
                ('resolved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='resolved_geo_alerts', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='geolocation_geolocationalerts', to='tenants.school', verbose_name='École')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='geolocation_alerts', to=settings.AUTH_USER_MODEL)),
                ('zone', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='alerts', to='geolocation.safezone')),
            ],
            options={
                'verbose_name': 'alerte de géolocalisation',
                'verbose_name_plural': 'alertes de géolocalisation',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['school', 'is_resolved'], name='geo_alert_school_res_idx'),
                    models.Index(fields=['device', 'alert_type', 'created_at'], name='geo_alert_device_type_idx'),
                ],
            },
        ),
    ]
