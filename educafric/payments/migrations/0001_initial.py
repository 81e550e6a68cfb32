import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

PROVIDER_CHOICES = [
    ('stripe', 'Carte bancaire (Stripe)'),
    ('mtn_momo', 'MTN Mobile Money'),
    ('orange_money', 'Orange Money'),
    ('manual', 'Manuel'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('plan_id', models.CharField(max_length=60, verbose_name='offre')),
                ('amount', models.PositiveIntegerField(verbose_name='montant')),
                ('currency', models.CharField(default='XAF', max_length=3)),
                ('provider', models.CharField(choices=PROVIDER_CHOICES, max_length=20)),
                ('status', models.CharField(choices=[('pending', 'En attente'), ('succeeded', 'Réussi'), ('failed', 'Échoué'), ('canceled', 'Annulé'), ('refunded', 'Remboursé')], db_index=True, default='pending', max_length=20)),
                ('external_id', models.CharField(help_text="Notre référence, transmise à l'opérateur", max_length=80, unique=True, verbose_name='référence commande')),
                ('provider_reference', models.CharField(blank=True, db_index=True, default='', max_length=120)),
                ('phone_number', models.CharField(blank=True, default='', max_length=20)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('failure_reason', models.CharField(blank=True, default='', max_length=255)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments', to='tenants.school')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'paiement',
                'verbose_name_plural': 'paiements',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['provider', 'status', 'created_at'], name='payment_provider_status_idx'),
                    models.Index(fields=['user', '-created_at'], name='payment_user_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Subscription',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('plan_id', models.CharField(max_length=60)),
                ('category', models.CharField(max_length=20)),
                ('status', models.CharField(choices=[('pending', 'En attente'), ('active', 'Active'), ('canceled', 'Annulée'), ('expired', 'Expirée')], default='pending', max_length=20)),
                ('payment_method', models.CharField(choices=PROVIDER_CHOICES, max_length=20)),
                ('starts_at', models.DateTimeField(blank=True, null=True)),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('auto_renew', models.BooleanField(default=False)),
                ('stripe_subscription_id', models.CharField(blank=True, db_index=True, default='', max_length=120)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('last_payment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='payments.payment')),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='subscriptions', to='tenants.school')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subscriptions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'abonnement',
                'verbose_name_plural': 'abonnements',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'plan_id', 'status'], name='sub_user_plan_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='WebhookEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('provider', models.CharField(choices=PROVIDER_CHOICES, max_length=20)),
                ('event_id', models.CharField(max_length=120)),
                ('event_type', models.CharField(blank=True, default='', max_length=80)),
                ('payload', models.JSONField(default=dict)),
                ('processed', models.BooleanField(default=False)),
                ('error', models.TextField(blank=True, default='')),
                ('received_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'événement webhook',
                'verbose_name_plural': 'événements webhook',
                'ordering': ['-received_at'],
                'unique_together': {('provider', 'event_id')},
            },
        ),
    ]
