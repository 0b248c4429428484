"""Icon names stored on services and industries, and how they render.

Admins type an icon name as free text. Rendering goes through ``resolve_icon``,
which only ever returns a member of the closed ``Icon`` enumeration; anything
unknown becomes ``Icon.DEFAULT``.
"""
from enum import Enum


class Icon(Enum):
    MESSAGE_SQUARE = ('MessageSquare', 'fa-regular fa-message')
    CPU = ('Cpu', 'fa-solid fa-microchip')
    WRENCH = ('Wrench', 'fa-solid fa-wrench')
    GRADUATION_CAP = ('GraduationCap', 'fa-solid fa-graduation-cap')
    BRAIN = ('Brain', 'fa-solid fa-brain')
    BAR_CHART = ('BarChart', 'fa-solid fa-chart-column')
    TRENDING_UP = ('TrendingUp', 'fa-solid fa-arrow-trend-up')
    EYE = ('Eye', 'fa-solid fa-eye')
    BOT = ('Bot', 'fa-solid fa-robot')
    SPARKLES = ('Sparkles', 'fa-solid fa-wand-magic-sparkles')
    USERS = ('Users', 'fa-solid fa-users')
    LIGHTBULB = ('Lightbulb', 'fa-regular fa-lightbulb')
    HEART = ('Heart', 'fa-solid fa-heart')
    AWARD = ('Award', 'fa-solid fa-award')
    TARGET = ('Target', 'fa-solid fa-bullseye')
    FACTORY = ('Factory', 'fa-solid fa-industry')
    PICKAXE = ('Pickaxe', 'fa-solid fa-hammer')
    DROPLET = ('Droplet', 'fa-solid fa-droplet')
    SHOPPING_CART = ('ShoppingCart', 'fa-solid fa-cart-shopping')
    DOLLAR_SIGN = ('DollarSign', 'fa-solid fa-dollar-sign')
    TRUCK = ('Truck', 'fa-solid fa-truck')
    BUILDING = ('Building', 'fa-solid fa-building')
    SHIELD = ('Shield', 'fa-solid fa-shield-halved')

    # Alias of MESSAGE_SQUARE; rendered for any name outside this enumeration.
    DEFAULT = ('MessageSquare', 'fa-regular fa-message')

    def __init__(self, label, css_class):
        self.label = label
        self.css_class = css_class


_BY_LABEL = {icon.label: icon for icon in Icon}
_BY_FOLDED_LABEL = {icon.label.lower(): icon for icon in Icon}


def resolve_icon(name):
    if not isinstance(name, str):
        return Icon.DEFAULT
    raw = name.strip()
    if not raw:
        return Icon.DEFAULT
    return _BY_LABEL.get(raw) or _BY_FOLDED_LABEL.get(raw.lower()) or Icon.DEFAULT


def icon_class(name):
    return resolve_icon(name).css_class


def icon_names():
    return [icon.label for icon in Icon]
