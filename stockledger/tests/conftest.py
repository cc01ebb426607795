"""
Pytest fixtures for Stockledger tests.
"""

from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from stockledger.models import Material


User = get_user_model()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='operator',
        password='testpass123'
    )


@pytest.fixture
def paper(db):
    """SRA3 coated paper, 1000 sheets on hand, minimum 100."""
    return Material.objects.create(
        name='SRA3 Coated 300g',
        unit='sheet',
        quantity=1000,
        min_quantity=100,
    )


@pytest.fixture
def toner(db):
    """Black toner cartridges, 20 on hand, minimum 5."""
    return Material.objects.create(
        name='Toner K',
        unit='pcs',
        quantity=20,
        min_quantity=5,
    )


@pytest.fixture
def vinyl(db):
    """Roll vinyl without a minimum."""
    return Material.objects.create(
        name='Vinyl 1.27m',
        unit='m',
        quantity=50,
    )


@pytest.fixture
def past():
    return timezone.now() - timedelta(hours=1)


@pytest.fixture
def future():
    return timezone.now() + timedelta(hours=1)
