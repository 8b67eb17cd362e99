from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("gateway", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="transaction",
            name="verify_claimed_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
