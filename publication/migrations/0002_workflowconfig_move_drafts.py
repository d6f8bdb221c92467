from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("publication", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="workflowconfig",
            name="move_strategy",
            field=models.CharField(
                choices=[
                    ("do_nothing", "Do nothing"),
                    ("move_target_if_unpublished", "Move target if unpublished"),
                    ("move_target", "Move target"),
                    ("move_drafts", "Move drafts"),
                    ("move_all", "Move all"),
                ],
                default="move_target",
                max_length=32,
            ),
        ),
    ]
