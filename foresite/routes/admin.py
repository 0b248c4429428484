from flask import Blueprint, render_template

from ..auth import admin_required
from ..content_schemas import MANAGERS
from ..resources import ResourceViews

admin_bp = Blueprint('admin', __name__)

RESOURCE_VIEWS = {
    'posts': ResourceViews(MANAGERS['posts'], '/posts'),
    'services': ResourceViews(MANAGERS['services'], '/services'),
    'industries': ResourceViews(MANAGERS['industries'], '/industries'),
    'industry_details': ResourceViews(MANAGERS['industry_details'], '/industries/<int:parent_id>/sections'),
}
DASHBOARD_TABS = ('posts', 'services', 'industries')

for _views in RESOURCE_VIEWS.values():
    _views.register(admin_bp)


@admin_bp.app_context_processor
def inject_resource_views():
    return {'resource_views': RESOURCE_VIEWS}


@admin_bp.route('')
@admin_required
def dashboard():
    tabs = []
    for name in DASHBOARD_TABS:
        views = RESOURCE_VIEWS[name]
        tabs.append({
            'name': name,
            'label': views.schema.plural_label,
            'count': views.manager.count(),
            'url': views.url('list'),
        })
    return render_template('admin/dashboard.html', tabs=tabs)
