from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='RegistryRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rnc', models.CharField(db_index=True, max_length=20)),
                ('legal_name', models.CharField(max_length=255)),
                ('economic_activity', models.CharField(blank=True, max_length=255)),
                ('activity_start_date', models.CharField(blank=True, max_length=32)),
                ('status', models.CharField(blank=True, max_length=32)),
                ('payment_regime', models.CharField(blank=True, max_length=32)),
            ],
            options={
                'indexes': [models.Index(fields=['legal_name'], name='rnc_legal_name_idx')],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('rnc', ''), _negated=True),
                            models.Q(('legal_name', ''), _negated=True),
                        ),
                        name='rnc_record_required_fields',
                    ),
                ],
            },
        ),
    ]
