import os
import secrets

from flask import current_app
from slugify import slugify

from .models import ROLE_ADMIN, Industry, Service, User, UserRole, db

DEFAULT_SERVICES = [
    (
        'AI Consulting Services',
        'MessageSquare',
        'Strategic guidance on leveraging AI for your business. We help you develop a comprehensive roadmap and ensure alignment with your business goals.',
        ['Strategic AI roadmap development', 'Business goal alignment', 'Technology assessment', 'Implementation planning'],
    ),
    (
        'Advanced AI Solutions',
        'Cpu',
        'End-to-end AI implementation services. From deployment to optimization, we ensure your AI solutions deliver maximum efficiency and performance.',
        ['Complete implementation lifecycle', 'System deployment & integration', 'Performance optimization', 'Continuous improvement'],
    ),
    (
        'Custom Industrial AI Solutions',
        'Wrench',
        'Bespoke AI applications tailored to your specific business challenges. We develop solutions that address your unique operational needs.',
        ['Tailored AI applications', 'Industry-specific customization', 'Scalable architecture', 'Ongoing support'],
    ),
    (
        'Training & Education',
        'GraduationCap',
        'Comprehensive workshops, webinars, and on-site training programs to empower your teams with the AI skills they need to succeed.',
        ['Hands-on workshops', 'Interactive webinars', 'On-site training', 'Certification programs'],
    ),
]

DEFAULT_INDUSTRIES = [
    ('Mining', 'Pickaxe', 'Optimize extraction processes, predictive maintenance, and resource allocation with AI-powered solutions for the mining industry.'),
    ('Oil & Gas', 'Droplet', 'Enhance exploration, production optimization, and safety protocols with advanced AI analytics for oil and gas operations.'),
    ('Retail', 'ShoppingCart', 'Transform customer experience, inventory management, and demand forecasting with intelligent retail solutions.'),
    ('Manufacturing', 'Factory', 'Streamline production lines, quality control, and supply chain management with AI-driven manufacturing solutions.'),
    ('Healthcare', 'Heart', 'Improve patient outcomes, diagnostics, and operational efficiency with healthcare-focused AI applications.'),
    ('Finance', 'DollarSign', 'Enhance risk assessment, fraud detection, and financial forecasting with sophisticated AI models.'),
    ('Transportation', 'Truck', 'Optimize logistics, route planning, and fleet management with AI-powered transportation solutions.'),
]


def _sync_admin_password(admin_email, env_password):
    if not env_password:
        return
    existing_admin = User.query.filter_by(email=admin_email).first()
    if existing_admin and not existing_admin.check_password(env_password):
        existing_admin.set_password(env_password)
        db.session.commit()


def seed_admin(admin_email, env_password):
    if not env_password:
        env_password = secrets.token_urlsafe(16)
        current_app.logger.warning(
            'ADMIN_PASSWORD not set. Seeded admin with a random password. '
            'Set ADMIN_PASSWORD and restart to rotate it to a known value.'
        )
    admin = User(email=admin_email)
    admin.set_password(env_password)
    db.session.add(admin)
    db.session.flush()
    db.session.add(UserRole(user_id=admin.id, role=ROLE_ADMIN))
    return admin


def seed_content():
    if Service.query.first() is None:
        for title, icon, description, features in DEFAULT_SERVICES:
            service = Service(title=title, icon=icon, description=description)
            service.features = features
            db.session.add(service)
    if Industry.query.first() is None:
        for name, icon, description in DEFAULT_INDUSTRIES:
            db.session.add(Industry(name=name, slug=slugify(name), icon=icon, description=description))


def seed_database():
    admin_email = (current_app.config.get('ADMIN_EMAIL') or 'admin@foresite.ai').strip().lower()
    env_password = os.environ.get('ADMIN_PASSWORD') or ''

    # Always sync admin password with env var on startup
    try:
        _sync_admin_password(admin_email, env_password)
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Admin password sync failed.')

    if User.query.first() is not None:
        return

    seed_admin(admin_email, env_password)
    seed_content()
    db.session.commit()
    current_app.logger.info('Seeded admin user and default content.')
