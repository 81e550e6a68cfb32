from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('notifications', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='notification',
            name='notification_type',
            field=models.CharField(choices=[('info', 'Information'), ('success', 'Succès'), ('warning', 'Avertissement'), ('alert', 'Alerte'), ('payment', 'Paiement'), ('online_class', 'Cours en ligne'), ('geolocation', 'Géolocalisation'), ('bulletin', 'Bulletin'), ('message', 'Message')], default='info', max_length=20, verbose_name='type'),
        ),
    ]
