from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='UserSession',
            fields=[
                ('session_key', models.CharField(max_length=40, primary_key=True, serialize=False)),
                ('principal', models.CharField(db_index=True, max_length=150)),
                ('created_at', models.DateTimeField(db_index=True)),
                ('invalidated_reason', models.CharField(
                    blank=True,
                    choices=[('', 'Live'), ('logout', 'Logout'), ('replaced', 'Replaced'), ('expired', 'Expired')],
                    default='',
                    max_length=16,
                )),
            ],
            options={
                'verbose_name': 'User Session',
                'verbose_name_plural': 'User Sessions',
                'db_table': 'user_sessions',
            },
        ),
        migrations.AddConstraint(
            model_name='usersession',
            constraint=models.UniqueConstraint(
                condition=models.Q(('invalidated_reason', '')),
                fields=('principal',),
                name='one_live_session_per_principal',
            ),
        ),
    ]
