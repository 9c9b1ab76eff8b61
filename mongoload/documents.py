"""Synthetic nested documents padded to a target BSON size."""

import random
import string
import time
import uuid

import bson
from faker import Faker

# bytes held back for the padding element's own type byte, key and length prefix
PADDING_OVERHEAD = 10

PADDING_ALPHABET = string.ascii_letters + string.digits

ORDER_STATUSES = ['pending', 'processing', 'shipped', 'delivered']
SHIPPING_METHODS = ['Standard', 'Express', 'Next Day']
CARRIERS = ['UPS', 'FedEx', 'DHL', 'USPS']
PAYMENT_METHODS = ['credit_card', 'debit_card', 'paypal', 'bank_transfer']
PAYMENT_STATUSES = ['authorized', 'captured', 'refunded', 'declined']
DEVICE_TYPES = ['desktop', 'mobile', 'tablet']
OPERATING_SYSTEMS = ['Windows 11', 'macOS 14', 'Ubuntu 22.04', 'iOS 17', 'Android 14']
CATEGORIES = ['Books', 'Electronics', 'Garden', 'Grocery', 'Health', 'Home', 'Outdoors', 'Sports', 'Toys']
ADJECTIVES = ['Small', 'Ergonomic', 'Rustic', 'Intelligent', 'Gorgeous', 'Sleek', 'Durable', 'Lightweight']
MATERIALS = ['Steel', 'Wooden', 'Concrete', 'Plastic', 'Cotton', 'Granite', 'Rubber', 'Leather']
PRODUCTS = ['Chair', 'Car', 'Computer', 'Gloves', 'Pants', 'Shirt', 'Table', 'Shoes', 'Hat', 'Lamp']
SIZES = ['XS', 'S', 'M', 'L', 'XL']
DISCOUNT_RATES = [0, 0, 0.05, 0.10, 0.15]
TAX_RATE = 0.08

DAY_MS = 24 * 60 * 60 * 1000


def serialized_size(doc):
    return len(bson.encode(doc))


def random_string(length, rng=random):
    return ''.join(rng.choice(PADDING_ALPHABET) for _ in range(length))


def now_ms():
    return int(time.time() * 1000)


class DocumentGenerator:
    """Builds one rich e-commerce style record per logical index.

    Every field value is drawn from ``rng`` and ``fake``; instances are not
    shared between threads, so each worker builds its own.
    """

    def __init__(self, seed=None, locale='en_US'):
        self.rng = random.Random(seed)
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)

    def generate(self, index, target_size):
        doc = self.generate_unpadded(index)
        current_size = serialized_size(doc)
        if current_size < target_size:
            padding_size = max(0, target_size - current_size - PADDING_OVERHEAD)
            doc['padding'] = random_string(padding_size, self.rng)
        return doc

    def generate_unpadded(self, index):
        order = self.order()
        return {
            '_id': str(uuid.UUID(int=self.rng.getrandbits(128), version=4)),
            'index': index,
            'timestamp': now_ms(),
            'user': self.user(),
            'order': order,
            'product': self.product(),
            'shipping': self.shipping(),
            'payment': self.payment(order['total']),
            'metadata': self.metadata(),
            'tags': self.tags(),
            'comments': self.comments(),
        }

    # --- Sub-documents ---
    def user(self):
        fake, rng = self.fake, self.rng
        return {
            'firstName': fake.first_name(),
            'lastName': fake.last_name(),
            'age': rng.randint(18, 89),
            'email': fake.email(),
            'phone': fake.phone_number(),
            'address': self.address(),
            'profile': {
                'occupation': fake.job(),
                'company': fake.company(),
                'interests': fake.words(nb=rng.randint(3, 5)),
                'memberSince': now_ms() - rng.randint(30, 3650) * DAY_MS,
            },
        }

    def address(self):
        fake = self.fake
        return {
            'street': fake.street_address(),
            'city': fake.city(),
            'country': fake.country(),
            'postalCode': fake.postcode(),
        }

    def order(self):
        rng = self.rng
        items = []
        for _ in range(rng.randint(1, 5)):
            items.append({
                'product': self.product_name(),
                'category': rng.choice(CATEGORIES),
                'quantity': rng.randint(1, 9),
                'price': round(rng.uniform(1, 1000), 2),
            })
        subtotal = round(sum(item['quantity'] * item['price'] for item in items), 2)
        discount = round(subtotal * rng.choice(DISCOUNT_RATES), 2)
        tax = round((subtotal - discount) * TAX_RATE, 2)
        return {
            'orderId': self.fake.bothify('ORD-########'),
            'items': items,
            'subtotal': subtotal,
            'discount': discount,
            'tax': tax,
            'total': round(subtotal - discount + tax, 2),
            'status': rng.choice(ORDER_STATUSES),
            'orderDate': now_ms() - rng.randint(0, 30 * DAY_MS),
        }

    def product(self):
        fake, rng = self.fake, self.rng
        return {
            'sku': fake.bothify('SKU-????-#####').upper(),
            'name': self.product_name(),
            'category': rng.choice(CATEGORIES),
            'brand': fake.company(),
            'price': round(rng.uniform(1, 1000), 2),
            'rating': round(rng.uniform(1, 5), 1),
            'stock': rng.randint(0, 500),
            'attributes': {
                'color': fake.color_name(),
                'size': rng.choice(SIZES),
                'weightKg': round(rng.uniform(0.1, 25), 2),
            },
        }

    def product_name(self):
        rng = self.rng
        return f'{rng.choice(ADJECTIVES)} {rng.choice(MATERIALS)} {rng.choice(PRODUCTS)}'

    def shipping(self):
        fake, rng = self.fake, self.rng
        return {
            'method': rng.choice(SHIPPING_METHODS),
            'carrier': rng.choice(CARRIERS),
            'trackingNumber': fake.bothify('1Z##########??').upper(),
            'address': self.address(),
            'cost': round(rng.uniform(0, 50), 2),
            'estimatedDelivery': now_ms() + rng.randint(1, 14) * DAY_MS,
        }

    def payment(self, amount):
        fake, rng = self.fake, self.rng
        return {
            'method': rng.choice(PAYMENT_METHODS),
            'provider': fake.credit_card_provider(),
            'last4': fake.credit_card_number()[-4:],
            'currency': 'USD',
            'amount': amount,
            'status': rng.choice(PAYMENT_STATUSES),
            'transactionId': fake.bothify('TXN-############'),
        }

    def metadata(self):
        fake, rng = self.fake, self.rng
        return {
            'userAgent': fake.user_agent(),
            'ipAddress': fake.ipv4(),
            'location': {
                'latitude': float(fake.latitude()),
                'longitude': float(fake.longitude()),
            },
            'lastLogin': now_ms() - rng.randint(0, 7 * DAY_MS),
            'deviceType': rng.choice(DEVICE_TYPES),
            'browser': fake.user_agent(),
            'operatingSystem': rng.choice(OPERATING_SYSTEMS),
            'sessionId': fake.bothify('????????????????').lower(),
        }

    def tags(self):
        return self.fake.words(nb=self.rng.randint(2, 6), unique=True)

    def comments(self):
        fake, rng = self.fake, self.rng
        return [
            {
                'author': fake.user_name(),
                'text': fake.sentence(nb_words=rng.randint(6, 16)),
                'rating': rng.randint(1, 5),
                'createdAt': now_ms() - rng.randint(0, 90 * DAY_MS),
            }
            for _ in range(rng.randint(0, 3))
        ]
