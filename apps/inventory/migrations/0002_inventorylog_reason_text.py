from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="inventorylog",
            name="reason",
            field=models.TextField(blank=True, help_text="Order #id, cancellation, audit note"),
        ),
    ]
