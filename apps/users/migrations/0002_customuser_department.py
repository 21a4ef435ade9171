# Generated manually on 2026-10-19

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('users', '0001_initial'),
        ('budgeting', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='customuser',
            name='department',
            field=models.ForeignKey(blank=True, help_text='Department this user belongs to.', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='users', to='budgeting.department', verbose_name='Department'),
        ),
    ]
