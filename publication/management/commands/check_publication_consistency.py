from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from publication.workflows.consistency import (
    find_inconsistencies,
    repair_interrupted_publications,
)


class Command(BaseCommand):
    help = "Report drafts and published copies that are out of step"

    def add_arguments(self, parser):
        parser.add_argument(
            "--repair",
            action="store_true",
            help="Finish publications interrupted before the draft was marked published",
        )
        parser.add_argument(
            "--user",
            help="Username recorded as author of repairs",
        )

    def handle(self, *args, **options):
        user = None
        if options.get("user"):
            User = get_user_model()
            user = User.objects.filter(username=options["user"]).first()
            if user is None:
                raise CommandError(f"Unknown user {options['user']}")

        issues = find_inconsistencies()
        for issue in issues:
            self.stdout.write(str(issue))

        if options["repair"]:
            repaired = repair_interrupted_publications(user=user, issues=issues)
            self.stdout.write(self.style.SUCCESS(f"Repaired {repaired} publication(s)"))

        if not issues:
            self.stdout.write(self.style.SUCCESS("No inconsistencies found"))
