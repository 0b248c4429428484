import os

from flask import Blueprint, abort, current_app, render_template, send_from_directory

from ..content_schemas import MANAGERS
from ..icons import resolve_icon
from ..models import Industry, IndustryDetail, Post, Service, db
from ..storage import LocalObjectStorage, get_storage

main_bp = Blueprint('main', __name__)

HOME_FEATURES = [
    {'icon': 'Sparkles', 'text': 'Innovative AI solutions'},
    {'icon': 'Cpu', 'text': 'Industry-specific expertise'},
    {'icon': 'TrendingUp', 'text': 'Cutting-edge technology'},
    {'icon': 'Users', 'text': 'Dedicated support'},
]

HOME_SOLUTIONS = [
    {
        'title': 'Cutting-Edge Custom AI Solutions',
        'description': 'Tailored AI applications designed specifically for your business challenges and objectives.',
    },
    {
        'title': 'Pioneering AI Integration',
        'description': 'Seamlessly integrate advanced AI capabilities into your existing workflows and systems.',
    },
    {
        'title': 'Consulting and Training',
        'description': 'Expert guidance and comprehensive training to empower your team with AI expertise.',
    },
]

HOME_INDUSTRIES = ['Mining', 'Oil & Gas', 'Retail', 'Manufacturing', 'Healthcare', 'Finance', 'Transportation']

ABOUT_VALUES = [
    {
        'icon': 'Lightbulb',
        'title': 'Innovation',
        'description': 'Staying at the frontier of AI and exploring new methods to deliver cutting-edge solutions.',
    },
    {
        'icon': 'Heart',
        'title': 'Integrity',
        'description': 'Conducting ethical and transparent business practices in everything we do.',
    },
    {
        'icon': 'Award',
        'title': 'Excellence',
        'description': 'Delivering top-quality work and solutions that exceed expectations.',
    },
    {
        'icon': 'Target',
        'title': 'Customer-Centricity',
        'description': 'Placing clients at the center of our mission and aiming to exceed their expectations.',
    },
]

ABOUT_FOCUS_INDUSTRIES = ['Manufacturing', 'Mining', 'Oil & Gas', 'Transportation']

CAREER_PERKS = [
    {'icon': 'Brain', 'title': 'Frontier work', 'description': 'Ship applied AI systems for industrial clients.'},
    {'icon': 'GraduationCap', 'title': 'Continuous learning', 'description': 'Training budget and time for research.'},
    {'icon': 'Users', 'title': 'Small senior team', 'description': 'Work directly with clients and founders.'},
]


def _industry_sections(industry_id):
    return IndustryDetail.query.filter_by(industry_id=industry_id).order_by(
        IndustryDetail.order_index.asc(),
        IndustryDetail.id.asc(),
    ).all()


@main_bp.route('/')
def index():
    return render_template(
        'index.html',
        features=HOME_FEATURES,
        solutions=HOME_SOLUTIONS,
        industries=HOME_INDUSTRIES,
    )


@main_bp.route('/about')
def about():
    return render_template('about.html', values=ABOUT_VALUES, focus_industries=ABOUT_FOCUS_INDUSTRIES)


@main_bp.route('/services')
def services():
    items = Service.query.order_by(Service.created_at.asc(), Service.id.asc()).all()
    return render_template('services.html', services=items)


@main_bp.route('/services/<int:service_id>')
def service_detail(service_id):
    service = db.session.get(Service, service_id)
    if service is None:
        return render_template('not_found.html', kind='Service', back_endpoint='main.services'), 404
    return render_template('service_detail.html', service=service, icon=resolve_icon(service.icon))


@main_bp.route('/industries')
def industries():
    items = Industry.query.order_by(Industry.created_at.asc(), Industry.id.asc()).all()
    return render_template('industries.html', industries=items)


@main_bp.route('/industries/<slug>')
def industry_detail(slug):
    industry = Industry.query.filter_by(slug=slug).first()
    if industry is None:
        return render_template('not_found.html', kind='Industry', back_endpoint='main.industries'), 404
    sections = _industry_sections(industry.id)
    return render_template('industry_detail.html', industry=industry, sections=sections)


@main_bp.route('/news')
def news():
    posts = MANAGERS['posts'].list()
    return render_template('news.html', posts=posts)


@main_bp.route('/news/<int:post_id>')
def post_detail(post_id):
    post = db.session.get(Post, post_id)
    if post is None:
        return render_template('not_found.html', kind='Post', back_endpoint='main.news'), 404
    return render_template('post_detail.html', post=post)


@main_bp.route('/contact')
def contact():
    return render_template('contact.html')


@main_bp.route('/career')
def career():
    return render_template('career.html', perks=CAREER_PERKS)


@main_bp.route('/storage/<bucket>/<path:object_path>')
def storage_object(bucket, object_path):
    storage = get_storage()
    if not isinstance(storage, LocalObjectStorage) or bucket != current_app.config['STORAGE_BUCKET']:
        abort(404)
    full_path = storage.resolve(bucket, object_path)
    if not full_path or not os.path.isfile(full_path):
        abort(404)
    return send_from_directory(os.path.dirname(full_path), os.path.basename(full_path), conditional=True, etag=True)
