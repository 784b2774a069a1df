"""
Django management command to set the wiki unlock password.

The password is encrypted with the site key and written to the secret
directory. Run it once per deployment and again whenever the password
changes; existing unlocked sessions stay unlocked.
"""

import getpass
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from wiki.gate import password_path, set_reference_password


class Command(BaseCommand):
    help = "Encrypt and store the password that unlocks restricted wiki content"

    def add_arguments(self, parser):
        parser.add_argument(
            "--password",
            help="New password (prompted for when omitted)",
        )
        parser.add_argument(
            "--from-file",
            type=Path,
            help="Read the plain-text password from this file",
        )

    def handle(self, *args, **options):
        if options["password"] and options["from_file"]:
            raise CommandError("Use either --password or --from-file, not both.")

        if options["from_file"]:
            try:
                password = options["from_file"].read_text(encoding="utf-8").strip()
            except OSError as e:
                raise CommandError(f"Cannot read {options['from_file']}: {e}")
        elif options["password"]:
            password = options["password"]
        else:
            password = getpass.getpass("Enter the new password: ")
            if password != getpass.getpass("Repeat the new password: "):
                raise CommandError("Passwords do not match.")

        if not password:
            raise CommandError("Password must not be empty.")

        set_reference_password(password)
        self.stdout.write(self.style.SUCCESS(f"Password encrypted and saved to {password_path()}"))
