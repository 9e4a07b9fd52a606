from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("storefront", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="user",
            name="otp_attempts",
            field=models.PositiveSmallIntegerField(default=0),
        ),
    ]
