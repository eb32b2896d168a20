# Seed Marketplace Management Command
import logging
import random
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from faker import Faker

from core.models import Category, Listing, User

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = 'Passw0rd!'

DEFAULT_USERS = [
    ('admin@campus.local', User.ROLE_ADMIN, 'Campus', 'Admin'),
    ('alice@campus.local', User.ROLE_SELLER, 'Alice', 'Seller'),
    ('charlie@campus.local', User.ROLE_SELLER, 'Charlie', 'Seller'),
    ('diana@campus.local', User.ROLE_SELLER, 'Diana', 'Seller'),
    ('bob@campus.local', User.ROLE_BUYER, 'Bob', 'Buyer'),
]

DEFAULT_CATEGORIES = [
    ('Computer Science', 'Programming and tech books'),
    ('Mathematics', 'Algebra, calculus, and statistics'),
    ('Literature', 'Novels and plays'),
    ('Biology', 'Life sciences and biology textbooks'),
    ('Physics', 'Physics and engineering textbooks'),
    ('Business', 'Business and economics books'),
    ('History', 'History and social studies'),
]

# (title, description, price, condition, category, seller index)
DEFAULT_BOOKS = [
    ('Introduction to Algorithms (4th Edition)', 'Excellent condition, no highlights. Perfect for CS courses.', '75.00', 'like_new', 'Computer Science', 0),
    ('Calculus: Early Transcendentals (8th Edition)', 'Clean copy with minimal notes. Includes access code.', '85.00', 'very_good', 'Mathematics', 0),
    ('The Great Gatsby', 'Classic literature, excellent for English courses. Well-preserved.', '12.00', 'good', 'Literature', 0),
    ('Campbell Biology (12th Edition)', 'Comprehensive biology textbook. Some highlighting.', '95.00', 'good', 'Biology', 0),
    ('University Physics with Modern Physics (15th Edition)', 'Heavy textbook but in great condition. No missing pages.', '110.00', 'very_good', 'Physics', 0),
    ('Clean Code: A Handbook of Agile Software Craftsmanship', 'Essential reading for developers. Slightly used.', '35.00', 'good', 'Computer Science', 1),
    ('Linear Algebra and Its Applications (6th Edition)', 'Required for math majors. Clean pages, no writing.', '65.00', 'like_new', 'Mathematics', 1),
    ('To Kill a Mockingbird', 'Classic American literature. Good condition with minor wear.', '10.00', 'fair', 'Literature', 1),
    ('Molecular Biology of the Cell (7th Edition)', 'Advanced biology text. Some notes in margins.', '120.00', 'good', 'Biology', 1),
    ('Principles of Microeconomics (8th Edition)', 'Economics textbook. Good condition, no access code.', '70.00', 'very_good', 'Business', 2),
    ('Design Patterns: Elements of Reusable Object-Oriented Software', 'Gang of Four book. Essential for software engineers.', '45.00', 'good', 'Computer Science', 2),
    ('Discrete Mathematics and Its Applications (8th Edition)', 'Used for multiple CS courses. Well-maintained.', '55.00', 'very_good', 'Mathematics', 2),
    ('1984 by George Orwell', 'Dystopian classic. Perfect condition.', '8.00', 'like_new', 'Literature', 2),
    ('Human Anatomy & Physiology (11th Edition)', 'Comprehensive anatomy book with diagrams intact.', '100.00', 'very_good', 'Biology', 0),
    ('Fundamentals of Physics (11th Edition Extended)', 'Complete physics textbook set. Excellent for physics majors.', '105.00', 'good', 'Physics', 1),
    ('Data Structures and Algorithms in Java (6th Edition)', 'Java-focused algorithms book. Minimal wear.', '60.00', 'very_good', 'Computer Science', 2),
    ('Statistical Methods for Psychology (9th Edition)', 'Statistics textbook. Some highlighting throughout.', '50.00', 'good', 'Mathematics', 0),
    ('The Catcher in the Rye', 'Classic coming-of-age novel. Good reading copy.', '9.00', 'fair', 'Literature', 1),
    ('World Civilizations: The Global Experience (7th Edition)', 'Comprehensive world history textbook. Maps included.', '80.00', 'very_good', 'History', 2),
    ('Operating System Concepts (10th Edition)', 'Silberschatz classic. Required for OS courses. Well-preserved.', '90.00', 'good', 'Computer Science', 0),
]


class Command(BaseCommand):
    help = 'Seeds demo accounts, categories and textbook listings. Safe to run repeatedly.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fake-listings',
            type=int,
            default=0,
            help='Also create this many randomly generated listings.',
        )
        parser.add_argument(
            '--password',
            default=DEFAULT_PASSWORD,
            help='Password for newly created demo accounts.',
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for generated listings.',
        )

    def handle(self, *args, **options):
        fake_count = options['fake_listings']
        if fake_count < 0:
            raise CommandError('--fake-listings must be zero or positive.')

        with transaction.atomic():
            users = self.ensure_users(options['password'])
            categories = self.ensure_categories()
            sellers = [users[email] for email, role, _, _ in DEFAULT_USERS if role == User.ROLE_SELLER]
            self.seed_listings(sellers, categories)

            if fake_count:
                self.create_fake_listings(fake_count, sellers, categories, options['seed'])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully.'))

    def ensure_users(self, password):
        users = {}
        for email, role, first_name, last_name in DEFAULT_USERS:
            user = User.objects.filter(email__iexact=email).first()
            if user is None:
                user = User.objects.create_user(
                    username=email,
                    email=email,
                    password=password,
                    first_name=first_name,
                    last_name=last_name,
                    role=role,
                    is_staff=(role == User.ROLE_ADMIN),
                )
                logger.info(f"Created default user: {email} with role: {role}")
                self.stdout.write(f'Created user {email} ({role})')
            else:
                logger.info(f"Default user already exists: {email}. Preserving existing user data.")
            users[email] = user
        return users

    def ensure_categories(self):
        categories = {}
        for name, description in DEFAULT_CATEGORIES:
            category, created = Category.objects.get_or_create(
                name=name,
                defaults={'description': description},
            )
            if created:
                self.stdout.write(f'Created category {name}')
            categories[name] = category
        return categories

    def seed_listings(self, sellers, categories):
        existing = Listing.objects.count()
        if existing:
            logger.info(f"Database already contains {existing} listings. Skipping listing seeding.")
            self.stdout.write(f'{existing} listings already present, skipping book listings.')
            return

        for title, description, price, condition, category_name, seller_index in DEFAULT_BOOKS:
            Listing.objects.create(
                title=title,
                description=description,
                price=Decimal(price),
                condition=condition,
                category=categories[category_name],
                seller=sellers[seller_index],
            )

        logger.info(f"Successfully seeded {len(DEFAULT_BOOKS)} book listings")
        self.stdout.write(f'Created {len(DEFAULT_BOOKS)} book listings')

    def create_fake_listings(self, count, sellers, categories, seed):
        fake = Faker()
        rng = random.Random(seed)
        if seed is not None:
            Faker.seed(seed)

        conditions = [choice for choice, _ in Listing.CONDITION_CHOICES]
        category_list = list(categories.values())

        for _ in range(count):
            Listing.objects.create(
                title=fake.catch_phrase()[:200],
                description=fake.paragraph(nb_sentences=3),
                price=Decimal(rng.randint(500, 15000)) / Decimal('100'),
                condition=rng.choice(conditions),
                category=rng.choice(category_list),
                seller=rng.choice(sellers),
            )

        self.stdout.write(f'Created {count} generated listings')
