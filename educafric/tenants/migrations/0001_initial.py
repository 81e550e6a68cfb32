import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='School',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('slug', models.SlugField(help_text='Identifiant unique (sous-domaine)', unique=True)),
                ('name', models.CharField(max_length=200, verbose_name='nom')),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('suspended', 'Suspendue')], default='active', max_length=20, verbose_name='statut')),
                ('school_type', models.CharField(choices=[('public', 'Public'), ('private', 'Privé')], default='public', max_length=20, verbose_name='type')),
                ('education_system', models.CharField(choices=[('francophone', 'Francophone'), ('anglophone', 'Anglophone')], default='francophone', max_length=20, verbose_name='système éducatif')),
                ('contact_email', models.EmailField(blank=True, max_length=254, verbose_name='email')),
                ('contact_phone', models.CharField(blank=True, max_length=30, verbose_name='téléphone')),
                ('address', models.CharField(blank=True, max_length=255, verbose_name='adresse')),
                ('city', models.CharField(blank=True, max_length=100, verbose_name='ville')),
                ('country', models.CharField(default='CM', max_length=2, verbose_name='pays')),
                ('timezone', models.CharField(default='Africa/Douala', max_length=50)),
                ('locale', models.CharField(default='fr', max_length=10)),
                ('geolocation_enabled', models.BooleanField(default=False, help_text='Suivi de sécurité des élèves pour cette école', verbose_name='géolocalisation activée')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(blank=True, help_text='Fondateur / directeur principal', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='owned_schools', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'école',
                'verbose_name_plural': 'écoles',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='SchoolMembership',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('director', 'Directeur'), ('admin', 'Administrateur'), ('teacher', 'Enseignant'), ('student', 'Élève'), ('parent', 'Parent')], default='student', max_length=20, verbose_name='rôle')),
                ('is_active', models.BooleanField(default=True, verbose_name='actif')),
                ('joined_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='tenants.school', verbose_name='école')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='school_memberships', to=settings.AUTH_USER_MODEL, verbose_name='utilisateur')),
            ],
            options={
                'verbose_name': "membre de l'école",
                'verbose_name_plural': "membres de l'école",
                'unique_together': {('school', 'user')},
                'indexes': [
                    models.Index(fields=['school', 'role'], name='membership_school_role_idx'),
                    models.Index(fields=['user', 'is_active'], name='membership_user_active_idx'),
                ],
            },
        ),
    ]
