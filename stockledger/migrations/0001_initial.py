"""
Initial migration for Stockledger models.
"""

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Stockledger models: Material, Movement, Reservation, ReservationHistory, AuditEntry."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Material',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200, verbose_name='Name')),
                ('unit', models.CharField(default='pcs', help_text='Unit of measure, e.g. "sheet", "m²", "roll".', max_length=20, verbose_name='Unit')),
                ('quantity', models.PositiveIntegerField(default=0, verbose_name='On hand')),
                ('min_quantity', models.PositiveIntegerField(blank=True, help_text='Low-stock threshold. Empty = no alert.', null=True, verbose_name='Minimum')),
                ('max_quantity', models.PositiveIntegerField(blank=True, null=True, verbose_name='Maximum')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Material',
                'verbose_name_plural': 'Materials',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Movement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('spend', 'Spend'), ('add', 'Add'), ('adjust_increase', 'Adjust (increase)'), ('adjust_decrease', 'Adjust (decrease)')], db_index=True, max_length=20, verbose_name='Kind')),
                ('quantity', models.PositiveIntegerField(help_text='Always |delta|.', verbose_name='Quantity moved')),
                ('delta', models.IntegerField(help_text='Positive = inbound, negative = consumption', verbose_name='Delta')),
                ('reason', models.CharField(help_text='Required. E.g. "Order #123", "Delivery 2024-05"', max_length=255, verbose_name='Reason')),
                ('order_id', models.PositiveIntegerField(blank=True, db_index=True, null=True, verbose_name='Order')),
                ('supplier_id', models.PositiveIntegerField(blank=True, null=True, verbose_name='Supplier')),
                ('delivery_number', models.CharField(blank=True, default='', max_length=100, verbose_name='Delivery number')),
                ('invoice_number', models.CharField(blank=True, default='', max_length=100, verbose_name='Invoice number')),
                ('delivery_date', models.DateField(blank=True, null=True, verbose_name='Delivery date')),
                ('delivery_notes', models.TextField(blank=True, default='', verbose_name='Delivery notes')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Date/Time')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='movements', to='stockledger.material', verbose_name='Material')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Movement',
                'verbose_name_plural': 'Movements',
                'ordering': ['created_at', 'pk'],
                'indexes': [models.Index(fields=['material', 'created_at'], name='stockledger_mv_mat_created')],
            },
        ),
        migrations.CreateModel(
            name='Reservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.PositiveIntegerField(blank=True, db_index=True, null=True, verbose_name='Order')),
                ('quantity', models.PositiveIntegerField(verbose_name='Reserved quantity')),
                ('status', models.CharField(choices=[('active', 'Active'), ('fulfilled', 'Fulfilled'), ('cancelled', 'Cancelled'), ('expired', 'Expired')], db_index=True, default='active', max_length=20, verbose_name='Status')),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, help_text='Empty = held until cancelled or fulfilled', null=True, verbose_name='Expires at')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notes')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('resolved_at', models.DateTimeField(blank=True, help_text='When it was fulfilled, cancelled or expired', null=True, verbose_name='Resolved at')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reservations', to='stockledger.material', verbose_name='Material')),
                ('reserved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Reserved by')),
            ],
            options={
                'verbose_name': 'Reservation',
                'verbose_name_plural': 'Reservations',
                'ordering': ['-created_at', '-pk'],
                'indexes': [
                    models.Index(fields=['status', 'expires_at'], name='stockledger_rs_status_exp'),
                    models.Index(fields=['material', 'status'], name='stockledger_rs_mat_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReservationHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('created', 'Created'), ('updated', 'Updated'), ('cancelled', 'Cancelled'), ('fulfilled', 'Fulfilled'), ('expired', 'Expired')], max_length=20, verbose_name='Action')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Reason')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Changed by')),
                ('reservation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='history', to='stockledger.reservation', verbose_name='Reservation')),
            ],
            options={
                'verbose_name': 'Reservation history',
                'verbose_name_plural': 'Reservation history',
                'ordering': ['created_at', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='AuditEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('operation_type', models.CharField(choices=[('spend', 'Spend'), ('add', 'Add'), ('adjust', 'Adjust'), ('reserve', 'Reserve'), ('unreserve', 'Unreserve')], db_index=True, max_length=20, verbose_name='Operation')),
                ('quantity', models.IntegerField(default=0, verbose_name='Quantity')),
                ('old_quantity', models.IntegerField(blank=True, null=True, verbose_name='Before')),
                ('new_quantity', models.IntegerField(blank=True, null=True, verbose_name='After')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Reason')),
                ('order_id', models.PositiveIntegerField(blank=True, db_index=True, null=True, verbose_name='Order')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('material', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='stockledger.material', verbose_name='Material')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Audit entry',
                'verbose_name_plural': 'Audit log',
                'ordering': ['-created_at', '-pk'],
            },
        ),
    ]
