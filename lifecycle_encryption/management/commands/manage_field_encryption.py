"""
Management command for checking field encryption configuration.
"""

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError

from lifecycle_encryption.apps import check_encrypted_models, get_subscriber
from lifecycle_encryption.conf import EncryptionSettings
from lifecycle_encryption.encryptors import build_encryptor, generate_secret_key
from lifecycle_encryption.exceptions import EncryptionConfigurationError


class Command(BaseCommand):
    help = 'Test, validate and audit field-level encryption'

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(
            dest='subcommand',
            help='Encryption management subcommands'
        )

        test_parser = subparsers.add_parser('test', help='Test encryption/decryption')
        test_parser.add_argument(
            '--value',
            type=str,
            default='Hello, World!',
            help='Value to encrypt and decrypt'
        )

        subparsers.add_parser('generate-key', help='Generate a new secret key')
        subparsers.add_parser('validate', help='Validate encryption configuration')
        subparsers.add_parser('audit', help='List models with encrypted fields')

    def handle(self, *args, **options):
        subcommand = options.get('subcommand')

        if not subcommand:
            self.print_help('manage.py', 'manage_field_encryption')
            return

        if subcommand == 'test':
            self.test_encryption(options['value'])
        elif subcommand == 'generate-key':
            self.generate_key()
        elif subcommand == 'validate':
            self.validate_config()
        elif subcommand == 'audit':
            self.audit_usage()

    def test_encryption(self, test_value):
        """Round-trip a value through the active encryptor."""
        self.stdout.write(self.style.NOTICE(f"Testing encryption with value: {test_value}"))

        encryptor = get_subscriber().encryptor
        if encryptor is None:
            raise CommandError("No encryptor configured (encryption is disabled)")

        encrypted = encryptor.encrypt(test_value)
        if not encrypted.ok:
            raise CommandError(f"Encryption failed: {encrypted.error}")
        self.stdout.write(f"Encrypted: {encrypted.value[:50]}..." if len(encrypted.value) > 50 else f"Encrypted: {encrypted.value}")

        decrypted = encryptor.decrypt(encrypted.value)
        if not decrypted.ok:
            raise CommandError(f"Decryption failed: {decrypted.error}")
        self.stdout.write(f"Decrypted: {decrypted.value}")

        if decrypted.value == test_value:
            self.stdout.write(self.style.SUCCESS("Encryption/decryption successful"))
        else:
            raise CommandError("Decrypted value doesn't match original")

    def generate_key(self):
        """Generate a new secret key."""
        new_key = generate_secret_key()

        self.stdout.write(self.style.SUCCESS(f"Generated key: {new_key}"))
        self.stdout.write("\nAdd this to your settings or environment:")
        self.stdout.write(f"ENCRYPTION_SECRET_KEY = '{new_key}'")
        self.stdout.write(self.style.WARNING(
            "\nThere is no key rotation: changing the key makes existing ciphertext unreadable."
        ))

    def validate_config(self):
        """Validate encryption configuration."""
        self.stdout.write(self.style.NOTICE("Validating encryption configuration..."))

        conf = EncryptionSettings.from_django()
        try:
            conf.validate()
            if conf.secret_key:
                encryptor = build_encryptor(conf.encryptor, conf.secret_key)
            else:
                encryptor = None
        except EncryptionConfigurationError as e:
            self.stdout.write(self.style.ERROR(f"Configuration invalid: {e}"))
            raise CommandError("Please fix the configuration errors above")

        self.stdout.write(self.style.SUCCESS("Configuration is valid"))
        self.stdout.write("\nCurrent configuration:")
        self.stdout.write(f"  Encryptor: {type(encryptor).__name__ if encryptor else 'none'}")
        self.stdout.write(f"  Secret key: {'configured' if conf.secret_key else 'not configured'}")
        self.stdout.write(f"  Disabled: {conf.disabled}")
        self.stdout.write(f"  Debug: {conf.debug}")

    def audit_usage(self):
        """List models with encrypted fields."""
        self.stdout.write(self.style.NOTICE("Auditing encryption usage..."))

        all_models = apps.get_models()
        try:
            classified = check_encrypted_models(get_subscriber().classifier, all_models)
        except EncryptionConfigurationError as e:
            raise CommandError(f"Audit failed: {e}")

        self.stdout.write("\nEncryption Usage Summary:")
        self.stdout.write(f"  Total models: {len(all_models)}")
        self.stdout.write(f"  Models with encryption: {len(classified)}")

        for model, fields in sorted(classified.items(), key=lambda item: item[0]._meta.label):
            self.stdout.write(f"\n  {model._meta.label}:")
            for sensitive in fields:
                self.stdout.write(f"    - {sensitive.name}")
