import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import core.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('role', models.CharField(choices=[('admin', 'Admin'), ('seller', 'Seller'), ('buyer', 'Buyer')], default='buyer', help_text='Marketplace role. Determines which operations the user may perform.', max_length=10, verbose_name='role')),
                ('profile_picture_url', models.URLField(blank=True, default='', help_text='Optional. Link to a profile picture.', max_length=500, verbose_name='profile picture URL')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='user_email_idx'),
                    models.Index(fields=['role'], name='user_role_idx'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(error_messages={'unique': 'A category with that name already exists.'}, help_text='Unique category name.', max_length=100, unique=True, validators=[core.validators.validate_not_blank], verbose_name='name')),
                ('description', models.TextField(blank=True, default='', help_text='Optional description of the category.', verbose_name='description')),
            ],
            options={
                'verbose_name': 'category',
                'verbose_name_plural': 'categories',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Listing',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(help_text='Book title as shown in search results.', max_length=200, validators=[core.validators.validate_not_blank], verbose_name='title')),
                ('description', models.TextField(help_text='Edition, author and any notes about the copy.', validators=[core.validators.validate_not_blank], verbose_name='description')),
                ('price', models.DecimalField(decimal_places=2, help_text='Asking price. Must be greater than zero.', max_digits=10, validators=[core.validators.validate_positive_price], verbose_name='price')),
                ('condition', models.CharField(choices=[('new', 'New'), ('like_new', 'Like New'), ('very_good', 'Very Good'), ('good', 'Good'), ('fair', 'Fair')], default='good', help_text='Physical condition of the book.', max_length=20, verbose_name='condition')),
                ('is_sold', models.BooleanField(default=False, help_text='Set when an order for this listing is completed.', verbose_name='sold')),
                ('version', models.PositiveIntegerField(default=1, editable=False, help_text='Row version used to detect concurrent updates.', verbose_name='version')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the listing was created', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the listing was last updated', verbose_name='updated at')),
                ('category', models.ForeignKey(help_text='Subject category of the book', on_delete=django.db.models.deletion.PROTECT, related_name='listings', to='core.category')),
                ('seller', models.ForeignKey(help_text='User selling the book', on_delete=django.db.models.deletion.CASCADE, related_name='listings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'listing',
                'verbose_name_plural': 'listings',
                'ordering': ['title'],
                'indexes': [
                    models.Index(fields=['seller'], name='listing_seller_idx'),
                    models.Index(fields=['category'], name='listing_category_idx'),
                    models.Index(fields=['is_sold'], name='listing_is_sold_idx'),
                    models.Index(fields=['price'], name='listing_price_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Offer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offered_price', models.DecimalField(decimal_places=2, help_text='Price proposed by the buyer.', max_digits=10, validators=[core.validators.validate_positive_price], verbose_name='offered price')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('rejected', 'Rejected')], default='pending', help_text='Current status of the offer', max_length=20, verbose_name='status')),
                ('version', models.PositiveIntegerField(default=1, editable=False, help_text='Row version used to detect concurrent updates.', verbose_name='version')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the offer was made', verbose_name='created at')),
                ('buyer', models.ForeignKey(help_text='User making the offer', on_delete=django.db.models.deletion.CASCADE, related_name='offers', to=settings.AUTH_USER_MODEL)),
                ('listing', models.ForeignKey(help_text='Listing the offer is made on', on_delete=django.db.models.deletion.PROTECT, related_name='offers', to='core.listing')),
            ],
            options={
                'verbose_name': 'offer',
                'verbose_name_plural': 'offers',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['listing', 'status'], name='offer_listing_status_idx'),
                    models.Index(fields=['buyer'], name='offer_buyer_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', help_text='Current status of the order', max_length=20, verbose_name='status')),
                ('version', models.PositiveIntegerField(default=1, editable=False, help_text='Row version used to detect concurrent updates.', verbose_name='version')),
                ('order_date', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the order was placed', verbose_name='order date')),
                ('buyer', models.ForeignKey(help_text='User placing the order', on_delete=django.db.models.deletion.CASCADE, related_name='orders', to=settings.AUTH_USER_MODEL)),
                ('listing', models.ForeignKey(help_text='Listing being purchased', on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='core.listing')),
            ],
            options={
                'verbose_name': 'order',
                'verbose_name_plural': 'orders',
                'ordering': ['-order_date'],
                'indexes': [
                    models.Index(fields=['listing', 'status'], name='order_listing_status_idx'),
                    models.Index(fields=['buyer'], name='order_buyer_idx'),
                    models.Index(fields=['order_date'], name='order_date_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(help_text='Rating from 1 to 5 stars', validators=[django.core.validators.MinValueValidator(1, message='Rating must be between 1 and 5.'), django.core.validators.MaxValueValidator(5, message='Rating must be between 1 and 5.')], verbose_name='rating')),
                ('comment', models.TextField(blank=True, default='', help_text='Optional review text', verbose_name='comment')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the review was created', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the review was last updated', verbose_name='updated at')),
                ('order', models.OneToOneField(error_messages={'unique': 'A review already exists for this order.'}, help_text='Order being reviewed', on_delete=django.db.models.deletion.CASCADE, related_name='review', to='core.order')),
                ('reviewee', models.ForeignKey(help_text='User being reviewed', on_delete=django.db.models.deletion.PROTECT, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
                ('reviewer', models.ForeignKey(help_text='User who wrote the review', on_delete=django.db.models.deletion.PROTECT, related_name='reviews_given', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['reviewer'], name='review_reviewer_idx'),
                    models.Index(fields=['reviewee'], name='review_reviewee_idx'),
                    models.Index(fields=['rating'], name='review_rating_idx'),
                ],
            },
        ),
    ]
