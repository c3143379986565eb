"""
Canteen Service — Startup data

The bootstrap admin is always ensured. Demo data (one canteen and a starter
menu) is only written when SEED_DEMO_DATA is set and no canteen exists yet.
"""
import logging

from canteen.core.config import get_settings
from canteen.models import Canteen, MenuCategory, MenuItem
from canteen.repositories import CanteenRepository
from canteen.services import accounts

settings = get_settings()
logger = logging.getLogger(__name__)

DEMO_MENU = [
    ("Cheese Pizza", "Classic cheese pizza with fresh basil", 120, MenuCategory.VEG),
    ("Classic Burger", "Juicy patty with fresh veggies", 150, MenuCategory.NONVEG),
    ("Masala Dosa", "Crispy dosa with potato filling", 80, MenuCategory.VEG),
    ("Samosa", "Crispy pastry with spiced potatoes", 25, MenuCategory.SNACKS),
    ("Masala Chai", "Spiced Indian tea", 20, MenuCategory.BEVERAGES),
    ("Chicken Biryani", "Fragrant rice with tender chicken", 180, MenuCategory.NONVEG),
]


async def seed(repo: CanteenRepository) -> None:
    await accounts.ensure_admin_account(repo, settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)
    if not settings.SEED_DEMO_DATA:
        return
    if await repo.list_canteens():
        logger.info("Canteens already present, skipping demo data")
        return

    canteen = await repo.create_canteen(
        Canteen(name="Main Canteen", location="Ground floor, main block", is_active=True)
    )
    for name, description, price, category in DEMO_MENU:
        await repo.create_menu_item(
            MenuItem(
                name=name,
                description=description,
                price=price,
                category=category.value,
                canteen_id=canteen.id,
                is_available=True,
            )
        )
    logger.info("Seeded demo canteen %s with %d menu items", canteen.id, len(DEMO_MENU))
