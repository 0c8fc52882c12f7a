"""Seed ABAC policies into the database repository."""

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from access_control.examples import EXAMPLE_POLICIES
from access_control.serializers import PolicyDefinitionSerializer
from access_control.stores import DatabasePolicyRepository


def load_policy_documents(path: str) -> list[dict]:
    """Read a JSON file holding one policy document or a list of them."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CommandError(f"Cannot read policy file {path}: {exc}") from exc
    return payload if isinstance(payload, list) else [payload]


def validate_policy_documents(documents: list[dict]) -> list[dict]:
    """Validate every document; report all invalid ones at once."""
    validated, problems = [], []
    for index, document in enumerate(documents):
        serializer = PolicyDefinitionSerializer(data=document)
        if serializer.is_valid():
            validated.append(dict(serializer.validated_data))
        else:
            name = document.get("name", f"#{index}") if isinstance(document, dict) else f"#{index}"
            problems.append(f"{name}: {serializer.errors}")
    if problems:
        raise CommandError("Invalid policy documents:\n" + "\n".join(problems))
    return validated


class Command(BaseCommand):
    """Management command loading example or file-provided policies."""

    help = (
        "Seed ABAC policies into the database. Loads the built-in example "
        "policies unless --file is given. Use --reset to delete existing "
        "policies first."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--file",
            help="JSON file with a policy document or a list of policy documents.",
        )
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete every stored policy before seeding.",
        )

    def handle(self, *args, **options):
        """Entrypoint for the management command."""
        repository = DatabasePolicyRepository()
        documents = load_policy_documents(options["file"]) if options.get("file") else EXAMPLE_POLICIES
        validated = validate_policy_documents(documents)

        if options.get("reset"):
            self.stdout.write("Deleting existing policies...")
            repository.reset()

        existing = {(p.name, p.version) for p in repository.list_policies()}
        created = 0
        for document in validated:
            if (document["name"], document["version"]) in existing:
                self.stdout.write(f"Skipping existing policy {document['name']} {document['version']}")
                continue
            repository.create_policy(document)
            created += 1

        self.stdout.write(self.style.SUCCESS(f"Policy seed completed ({created} created)."))
