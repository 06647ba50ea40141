import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('caregivers', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CareService',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('service_type', models.CharField(choices=[('elderly_care', 'Elderly care'), ('special_needs', 'Special needs'), ('alzheimers', "Alzheimer's and dementia"), ('physical_therapy', 'Physical therapy'), ('medication_management', 'Medication management'), ('companionship', 'Companionship'), ('personal_care', 'Personal care'), ('dementia_care', 'Dementia care')], max_length=30)),
                ('patient_name', models.CharField(blank=True, max_length=120)),
                ('patient_age', models.PositiveIntegerField(blank=True, null=True)),
                ('patient_condition', models.TextField(blank=True)),
                ('special_needs', models.TextField(blank=True)),
                ('notes', models.TextField(blank=True)),
                ('address', models.CharField(blank=True, max_length=255)),
                ('location_latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('location_longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('scheduled_date', models.DateTimeField()),
                ('duration_hours', models.PositiveIntegerField(default=1)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('matched', 'Matched'), ('accepted', 'Accepted'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('commission_family', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('commission_caregiver', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('net_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('held', 'Held in escrow'), ('released', 'Released'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('payment_preference_id', models.CharField(blank=True, max_length=120)),
                ('payment_reference', models.CharField(blank=True, max_length=120)),
                ('released_at', models.DateTimeField(blank=True, null=True)),
                ('actual_start', models.DateTimeField(blank=True, null=True)),
                ('actual_end', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('matching_rounds', models.PositiveIntegerField(default=0)),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('caregiver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_services', to=settings.AUTH_USER_MODEL)),
                ('family', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='care_services', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'care_services',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['status', 'created_at'], name='care_svc_status_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='ServiceNotification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('distance_km', models.FloatField()),
                ('notified_via', models.CharField(choices=[('email', 'Email'), ('websocket', 'WebSocket'), ('both', 'Email and WebSocket')], default='email', max_length=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('interested', 'Interested'), ('declined', 'Declined'), ('accepted', 'Accepted')], default='pending', max_length=20)),
                ('matching_round', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('caregiver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='service_notifications', to='caregivers.caregiverprofile')),
                ('service', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='care_services.careservice')),
            ],
            options={
                'db_table': 'service_notifications',
                'ordering': ['distance_km'],
                'constraints': [models.UniqueConstraint(fields=('service', 'caregiver', 'matching_round'), name='unique_service_caregiver_round')],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('comment', models.TextField(blank=True)),
                ('is_public', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('caregiver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='caregivers.caregiverprofile')),
                ('family', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_written', to=settings.AUTH_USER_MODEL)),
                ('service', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='review', to='care_services.careservice')),
            ],
            options={
                'db_table': 'service_reviews',
                'ordering': ['-created_at'],
            },
        ),
    ]
