# Generated manually for deals app

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Deal',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(choices=[('apartments', 'Apartments'), ('electrical', 'Electrical Appliances'), ('furniture', 'Furniture'), ('electronics', 'Electronics'), ('home', 'Home'), ('fashion', 'Fashion')], max_length=20)),
                ('original_price', models.DecimalField(decimal_places=2, max_digits=12, validators=[MinValueValidator(Decimal('1'))])),
                ('current_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('price_delta_percentage', models.DecimalField(decimal_places=2, default=Decimal('4'), max_digits=5, validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('50'))])),
                ('participant_count', models.PositiveIntegerField(default=0)),
                ('min_participants', models.PositiveIntegerField(default=1)),
                ('target_participants', models.PositiveIntegerField()),
                ('end_time', models.DateTimeField()),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('active', 'Active'), ('closing', 'Closing'), ('closed', 'Closed'), ('cancelled', 'Cancelled'), ('partially_failed', 'Partially Failed'), ('payment_failed', 'Payment Failed')], default='active', max_length=20)),
                ('price_version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('supplier', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='supplied_deals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'deals',
                'ordering': ['end_time'],
                'indexes': [
                    models.Index(fields=['status', 'end_time'], name='deals_status_end_idx'),
                    models.Index(fields=['category', 'status'], name='deals_category_idx'),
                    models.Index(fields=['supplier', 'created_at'], name='deals_supplier_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DealTier',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('min_participants', models.PositiveIntegerField()),
                ('max_participants', models.PositiveIntegerField(validators=[MinValueValidator(1)])),
                ('discount', models.DecimalField(decimal_places=2, max_digits=5, validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))])),
                ('price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tiers', to='deals.deal')),
            ],
            options={
                'db_table': 'deal_tiers',
                'ordering': ['min_participants'],
                'unique_together': {('deal', 'min_participants')},
            },
        ),
        migrations.CreateModel(
            name='Participant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('quantity', models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])),
                ('position', models.PositiveIntegerField()),
                ('initial_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('price_paid', models.DecimalField(decimal_places=2, max_digits=12)),
                ('final_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('charged', 'Charged'), ('failed', 'Failed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('payment_reference', models.CharField(blank=True, max_length=100)),
                ('joined_at', models.DateTimeField(auto_now_add=True)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='deals.deal')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='participations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'deal_participants',
                'ordering': ['position'],
                'indexes': [
                    models.Index(fields=['user', 'joined_at'], name='participants_user_idx'),
                    models.Index(fields=['deal', 'payment_status'], name='participants_payment_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('deal', 'position'), name='unique_deal_position'),
                    models.UniqueConstraint(fields=('deal', 'user'), name='unique_deal_user'),
                ],
            },
        ),
    ]
