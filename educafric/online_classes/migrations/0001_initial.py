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
            name='OnlineCourse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, verbose_name='titre')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('class_name', models.CharField(blank=True, default='', help_text='Ex. 6ème A, Form 2', max_length=100, verbose_name='classe')),
                ('subject', models.CharField(blank=True, default='', max_length=100, verbose_name='matière')),
                ('language', models.CharField(default='fr', max_length=2, verbose_name='langue')),
                ('max_participants', models.PositiveIntegerField(default=50, validators=[django.core.validators.MinValueValidator(2), django.core.validators.MaxValueValidator(500)], verbose_name='participants max')),
                ('allow_recording', models.BooleanField(default=True)),
                ('require_approval', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True, verbose_name='actif')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='online_classes_onlinecourses', to='tenants.school', verbose_name='École')),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='online_courses', to=settings.AUTH_USER_MODEL, verbose_name='enseignant')),
            ],
            options={
                'verbose_name': 'cours en ligne',
                'verbose_name_plural': 'cours en ligne',
                'ordering': ['title'],
            },
        ),
        migrations.CreateModel(
            name='CourseEnrollment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('student', 'Élève'), ('teacher', 'Enseignant'), ('observer', 'Observateur'), ('parent', 'Parent')], default='student', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('enrolled_at', models.DateTimeField(auto_now_add=True)),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='enrollments', to='online_classes.onlinecourse')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='course_enrollments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'inscription',
                'verbose_name_plural': 'inscriptions',
                'unique_together': {('course', 'user')},
            },
        ),
        migrations.CreateModel(
            name='ClassRecurrence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, verbose_name='titre')),
                ('description', models.TextField(blank=True, default='')),
                ('rule_type', models.CharField(choices=[('daily', 'Quotidien'), ('weekly', 'Hebdomadaire'), ('biweekly', 'Toutes les deux semaines'), ('custom', 'Personnalisé')], max_length=10, verbose_name='règle')),
                ('interval', models.PositiveSmallIntegerField(default=1, help_text='Tous les N jours / semaines', validators=[django.core.validators.MinValueValidator(1)], verbose_name='intervalle')),
                ('by_day', models.JSONField(blank=True, default=list, help_text='Ex. ["monday", "wednesday"]', verbose_name='jours')),
                ('start_time', models.TimeField(verbose_name='heure de début')),
                ('duration_minutes', models.PositiveSmallIntegerField(default=60, validators=[django.core.validators.MinValueValidator(15), django.core.validators.MaxValueValidator(240)], verbose_name='durée (minutes)')),
                ('start_date', models.DateField(verbose_name='date de début')),
                ('end_date', models.DateField(blank=True, null=True, verbose_name='date de fin')),
                ('occurrences_generated', models.PositiveIntegerField(default=0)),
                ('last_generated_at', models.DateTimeField(blank=True, null=True)),
                ('next_generation_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True, verbose_name='active')),
                ('paused_at', models.DateTimeField(blank=True, null=True)),
                ('pause_reason', models.CharField(blank=True, default='', max_length=255)),
                ('max_duration', models.PositiveSmallIntegerField(default=120)),
                ('auto_notify', models.BooleanField(default=True, help_text='Prévenir élèves et parents à chaque séance générée', verbose_name='notifier automatiquement')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recurrences', to='online_classes.onlinecourse')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_recurrences', to=settings.AUTH_USER_MODEL)),
                ('paused_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='paused_recurrences', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='online_classes_classrecurrences', to='tenants.school', verbose_name='École')),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='class_recurrences', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'récurrence',
                'verbose_name_plural': 'récurrences',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['school', 'is_active'], name='recurrence_school_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='ClassSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, verbose_name='titre')),
                ('description', models.TextField(blank=True, default='')),
                ('scheduled_start', models.DateTimeField(db_index=True, verbose_name='début prévu')),
                ('scheduled_end', models.DateTimeField(blank=True, null=True, verbose_name='fin prévue')),
                ('actual_start', models.DateTimeField(blank=True, null=True)),
                ('actual_end', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('scheduled', 'Programmée'), ('live', 'En direct'), ('ended', 'Terminée'), ('canceled', 'Annulée'), ('recorded', 'Enregistrée')], default='scheduled', max_length=10)),
                ('room_name', models.CharField(max_length=120, unique=True)),
                ('room_password', models.CharField(blank=True, default='', max_length=64)),
                ('max_duration', models.PositiveSmallIntegerField(default=120, verbose_name='durée max (minutes)')),
                ('lobby_enabled', models.BooleanField(default=True)),
                ('chat_enabled', models.BooleanField(default=True)),
                ('screen_share_enabled', models.BooleanField(default=True)),
                ('creator_type', models.CharField(choices=[('teacher', 'Enseignant'), ('school', 'École')], default='teacher', max_length=10)),
                ('notifications_sent', models.BooleanField(default=False)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sessions', to='online_classes.onlinecourse')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_sessions', to=settings.AUTH_USER_MODEL)),
                ('recurrence', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sessions', to='online_classes.classrecurrence')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='online_classes_classsessions', to='tenants.school', verbose_name='École')),
                ('teacher', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='taught_sessions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'séance',
                'verbose_name_plural': 'séances',
                'ordering': ['scheduled_start'],
                'indexes': [
                    models.Index(fields=['school', 'status', 'scheduled_start'], name='session_school_status_idx'),
                    models.Index(fields=['teacher', 'scheduled_start'], name='session_teacher_start_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OnlineClassActivation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('activator_type', models.CharField(choices=[('school', 'École'), ('teacher', 'Enseignant')], max_length=10)),
                ('duration_type', models.CharField(choices=[('daily', '1 jour'), ('weekly', '1 semaine'), ('monthly', '1 mois'), ('quarterly', '3 mois'), ('semestral', '6 mois'), ('yearly', '1 an')], max_length=10)),
                ('start_date', models.DateTimeField()),
                ('end_date', models.DateTimeField(db_index=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('expired', 'Expirée'), ('canceled', 'Annulée')], default='active', max_length=10)),
                ('activated_by', models.CharField(choices=[('admin_manual', 'Activation manuelle'), ('self_purchase', 'Achat')], max_length=20)),
                ('payment_reference', models.CharField(blank=True, default='', max_length=120)),
                ('payment_method', models.CharField(blank=True, default='manual', max_length=20)),
                ('amount_paid', models.PositiveIntegerField(blank=True, help_text='Montant en FCFA', null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('admin_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='granted_activations', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='online_class_activations', to='tenants.school')),
                ('teacher', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='online_class_activations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'activation cours en ligne',
                'verbose_name_plural': 'activations cours en ligne',
                'ordering': ['-end_date'],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('activator_type', 'school'), ('school__isnull', False)) | models.Q(('activator_type', 'teacher'), ('teacher__isnull', False)),
                        name='activation_has_activator',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionAttendance',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('joined_at', models.DateTimeField()),
                ('left_at', models.DateTimeField(blank=True, null=True)),
                ('duration_seconds', models.PositiveIntegerField(default=0)),
                ('device_type', models.CharField(blank=True, default='', max_length=20)),
                ('left_reason', models.CharField(blank=True, default='', max_length=30)),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendances', to='online_classes.classsession')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='session_attendances', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'présence',
                'verbose_name_plural': 'présences',
                'ordering': ['joined_at'],
                'indexes': [models.Index(fields=['session', 'user'], name='attendance_session_user_idx')],
            },
        ),
    ]
