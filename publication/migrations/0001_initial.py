from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Document",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("wiki", models.CharField(max_length=64)),
                ("space", models.CharField(max_length=512)),
                ("name", models.CharField(max_length=255)),
                ("title", models.CharField(blank=True, max_length=255)),
                ("content", models.TextField(blank=True)),
                ("hidden", models.BooleanField(default=False)),
                ("version", models.PositiveIntegerField(default=0)),
                ("comment", models.CharField(blank=True, max_length=1023)),
                (
                    "author",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="authored_documents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_documents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["wiki", "space", "name"],
            },
        ),
        migrations.AddConstraint(
            model_name="document",
            constraint=models.UniqueConstraint(fields=("wiki", "space", "name"), name="uniq_document_reference"),
        ),
        migrations.CreateModel(
            name="Attachment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("filename", models.CharField(max_length=255)),
                ("mimetype", models.CharField(blank=True, max_length=128)),
                ("content", models.BinaryField(blank=True, default=bytes)),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attachments",
                        to="publication.document",
                    ),
                ),
            ],
            options={
                "ordering": ["filename"],
                "unique_together": {("document", "filename")},
            },
        ),
        migrations.CreateModel(
            name="RightsEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("levels", models.JSONField(default=list)),
                ("groups", models.JSONField(blank=True, default=list)),
                ("users", models.JSONField(blank=True, default=list)),
                ("allow", models.BooleanField(default=True)),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rights",
                        to="publication.document",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "verbose_name_plural": "rights entries",
            },
        ),
        migrations.CreateModel(
            name="WorkflowConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255, unique=True)),
                ("contributor", models.CharField(blank=True, max_length=512)),
                ("moderator", models.CharField(blank=True, max_length=512)),
                ("validator", models.CharField(blank=True, max_length=512)),
                ("viewer", models.CharField(blank=True, max_length=512)),
                ("commenter", models.CharField(blank=True, max_length=512)),
                ("default_draft_space", models.CharField(blank=True, max_length=512)),
                ("default_target_space", models.CharField(blank=True, max_length=512)),
                ("drafts_hidden", models.BooleanField(default=True)),
                ("skip_draft_rights", models.BooleanField(default=False)),
                ("allow_custom_publication_comment", models.BooleanField(default=False)),
                (
                    "move_strategy",
                    models.CharField(
                        choices=[
                            ("do_nothing", "Do nothing"),
                            ("move_target_if_unpublished", "Move target if unpublished"),
                            ("move_target", "Move target"),
                        ],
                        default="move_target",
                        max_length=32,
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="WorkflowMetadata",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("wiki", models.CharField(editable=False, max_length=64)),
                ("config_ref", models.CharField(max_length=255)),
                ("target", models.CharField(blank=True, max_length=1024)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("moderating", "Moderating"),
                            ("validating", "Validating"),
                            ("valid", "Valid"),
                            ("published", "Published"),
                            ("archived", "Archived"),
                        ],
                        default="draft",
                        max_length=16,
                    ),
                ),
                ("is_target", models.BooleanField(default=False)),
                ("include_children", models.BooleanField(default=False)),
                ("publication_comment", models.TextField(blank=True)),
                (
                    "document",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="workflow",
                        to="publication.document",
                    ),
                ),
                (
                    "status_author",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "workflow metadata",
            },
        ),
        migrations.AddIndex(
            model_name="workflowmetadata",
            index=models.Index(fields=["target", "is_target"], name="wfmeta_target_kind_idx"),
        ),
        migrations.AddConstraint(
            model_name="workflowmetadata",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_target", False), models.Q(("target", ""), _negated=True)),
                fields=("wiki", "target"),
                name="uniq_draft_per_target",
            ),
        ),
        migrations.AddConstraint(
            model_name="workflowmetadata",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_target", True), models.Q(("target", ""), _negated=True)),
                fields=("wiki", "target"),
                name="uniq_published_per_target",
            ),
        ),
        migrations.CreateModel(
            name="WorkflowTransition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=1024)),
                ("action", models.CharField(max_length=64)),
                ("from_status", models.CharField(blank=True, max_length=16)),
                ("to_status", models.CharField(blank=True, max_length=16)),
                ("comment", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "document",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="transitions",
                        to="publication.document",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="publication_transitions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.AddIndex(
            model_name="workflowtransition",
            index=models.Index(fields=["reference"], name="wftransition_reference_idx"),
        ),
    ]
