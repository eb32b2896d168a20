from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from core.models import Category, Listing, User


class SeedMarketplaceCommandTests(TestCase):

    def run_command(self, *args):
        out = StringIO()
        call_command('seed_marketplace', *args, stdout=out)
        return out.getvalue()

    def test_seeds_accounts_categories_and_books(self):
        output = self.run_command()

        self.assertIn('Database seeding completed successfully.', output)
        self.assertEqual(User.objects.count(), 5)
        self.assertEqual(Category.objects.count(), 7)
        self.assertEqual(Listing.objects.count(), 20)

        admin = User.objects.get(email='admin@campus.local')
        self.assertEqual(admin.role, User.ROLE_ADMIN)
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.check_password('Passw0rd!'))
        self.assertEqual(User.objects.filter(role=User.ROLE_SELLER).count(), 3)
        self.assertFalse(Listing.objects.filter(is_sold=True).exists())

    def test_running_twice_changes_nothing(self):
        self.run_command()
        output = self.run_command()

        self.assertIn('listings already present', output)
        self.assertEqual(User.objects.count(), 5)
        self.assertEqual(Category.objects.count(), 7)
        self.assertEqual(Listing.objects.count(), 20)

    def test_existing_user_is_preserved(self):
        User.objects.create_user(
            username='bob@campus.local', email='bob@campus.local', password='mine123!', first_name='Robert'
        )

        self.run_command()

        bob = User.objects.get(email='bob@campus.local')
        self.assertEqual(bob.first_name, 'Robert')
        self.assertTrue(bob.check_password('mine123!'))

    def test_fake_listings(self):
        self.run_command('--fake-listings', '5', '--seed', '42')

        self.assertEqual(Listing.objects.count(), 25)
        self.assertTrue(all(listing.price > 0 for listing in Listing.objects.all()))

    def test_custom_password(self):
        self.run_command('--password', 'Campus!2026')

        self.assertTrue(User.objects.get(email='alice@campus.local').check_password('Campus!2026'))

    def test_negative_fake_count_is_an_error(self):
        with self.assertRaises(CommandError):
            self.run_command('--fake-listings', '-1')

        self.assertFalse(User.objects.exists())
