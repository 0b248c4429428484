"""Generic create/read/update/delete plumbing for admin-managed tables.

A ``ResourceSchema`` describes one table: its form fields, how the admin list
is ordered, and the optional parent key, owner key, slug source and image
prefix. ``ResourceManager`` performs the database operations for a schema and
``ResourceViews`` exposes them as admin pages on a blueprint.

Every mutation is followed by a redirect back to the list, which refetches all
rows. There is no pagination; content volume is small.
"""
import bleach
from flask import abort, current_app, flash, redirect, render_template, request, url_for
from slugify import slugify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .auth import admin_required, current_auth
from .icons import icon_names
from .models import db
from .storage import StorageError, public_url_prefix, upload_image
from .utils import clean_text, parse_int

ALLOWED_RICH_TEXT_TAGS = [
    'p', 'br', 'strong', 'em', 'b', 'i', 'u', 'blockquote', 'code', 'pre',
    'ul', 'ol', 'li', 'h2', 'h3', 'h4', 'a', 'img', 'hr',
]
ALLOWED_RICH_TEXT_ATTRIBUTES = {
    'a': ['href', 'title', 'target', 'rel'],
    'img': ['src', 'alt', 'title', 'width', 'height'],
}
ALLOWED_RICH_TEXT_PROTOCOLS = ['http', 'https', 'mailto']

TEXT = 'text'
TEXTAREA = 'textarea'
RICH_TEXT = 'rich_text'
INTEGER = 'integer'
LINES = 'lines'
ICON = 'icon'
IMAGE = 'image'


class ResourceError(Exception):
    pass


class ResourceNotFound(ResourceError):
    pass


def sanitize_html(value, max_length=100000):
    html = (value or '').strip()
    cleaned = bleach.clean(
        html,
        tags=ALLOWED_RICH_TEXT_TAGS,
        attributes=ALLOWED_RICH_TEXT_ATTRIBUTES,
        protocols=ALLOWED_RICH_TEXT_PROTOCOLS,
        strip=True,
    )
    return cleaned[:max_length]


def clean_lines(values, max_length=300):
    """Drop blank entries, keeping the order of the rest."""
    cleaned = []
    for value in values or []:
        text = clean_text(value, max_length)
        if text:
            cleaned.append(text)
    return cleaned


class Field:
    def __init__(self, name, label, kind=TEXT, required=False, default='', max_length=255, placeholder='', help_text=''):
        self.name = name
        self.label = label
        self.kind = kind
        self.required = required
        self.default = default
        self.max_length = max_length
        self.placeholder = placeholder
        self.help_text = help_text

    def blank(self):
        if self.kind == LINES:
            return list(self.default or [''])
        return self.default

    def from_item(self, item):
        value = getattr(item, self.name)
        if self.kind == LINES:
            return list(value or []) or ['']
        if value is None:
            return '' if self.kind != INTEGER else 0
        return value

    def parse(self, formdata):
        """Return ``(form_value, clean_value)`` for this field."""
        if self.kind == LINES:
            raw = formdata.getlist(self.name)
            return (raw or [''], clean_lines(raw, self.max_length))
        raw = formdata.get(self.name, '')
        if self.kind == INTEGER:
            value = parse_int(raw, default=None, min_value=-100000, max_value=100000)
            return (raw, value)
        if self.kind == RICH_TEXT:
            return (raw, sanitize_html(raw, self.max_length))
        if self.kind == TEXTAREA:
            return (raw, (raw or '').strip()[:self.max_length])
        return (raw, clean_text(raw, self.max_length))

    def is_missing(self, value):
        if self.kind == INTEGER:
            return value is None
        return not value


class ResourceSchema:
    def __init__(
        self,
        name,
        model,
        label,
        plural_label,
        fields,
        order_by,
        descending=False,
        title_field='title',
        parent_key=None,
        parent_model=None,
        owner_key=None,
        slug_source=None,
        image_prefix=None,
        summary_fields=(),
        child=None,
    ):
        self.name = name
        self.model = model
        self.label = label
        self.plural_label = plural_label
        self.fields = list(fields)
        self.order_by = order_by
        self.descending = descending
        self.title_field = title_field
        self.parent_key = parent_key
        self.parent_model = parent_model
        self.owner_key = owner_key
        self.slug_source = slug_source
        self.image_prefix = image_prefix
        self.summary_fields = tuple(summary_fields)
        self.child = child

    @property
    def image_field(self):
        for field in self.fields:
            if field.kind == IMAGE:
                return field
        return None


class ResourceManager:
    def __init__(self, schema):
        self.schema = schema

    @property
    def model(self):
        return self.schema.model

    def _query(self, parent_id=None):
        query = self.model.query
        if self.schema.parent_key:
            query = query.filter(getattr(self.model, self.schema.parent_key) == parent_id)
        return query

    def list(self, parent_id=None):
        order_column = getattr(self.model, self.schema.order_by)
        primary = order_column.desc() if self.schema.descending else order_column.asc()
        tiebreak = self.model.id.desc() if self.schema.descending else self.model.id.asc()
        return self._query(parent_id).order_by(primary, tiebreak).all()

    def count(self, parent_id=None):
        return self._query(parent_id).count()

    def get(self, item_id, parent_id=None):
        item = self._query(parent_id).filter(self.model.id == item_id).first()
        if item is None:
            raise ResourceNotFound(f'{self.schema.label} {item_id} not found.')
        return item

    def get_parent(self, parent_id):
        if not self.schema.parent_model:
            return None
        parent = db.session.get(self.schema.parent_model, parent_id)
        if parent is None:
            raise ResourceNotFound(f'Parent {parent_id} not found.')
        return parent

    def blank_form(self):
        return {field.name: field.blank() for field in self.schema.fields}

    def form_from_item(self, item):
        return {field.name: field.from_item(item) for field in self.schema.fields}

    def parse_form(self, formdata):
        """Return ``(form, values, errors)`` from submitted form data.

        ``form`` echoes what the admin typed so a failed save can re-render
        it untouched; ``values`` holds the cleaned column values.
        """
        form = {}
        values = {}
        errors = []
        for field in self.schema.fields:
            form_value, value = field.parse(formdata)
            form[field.name] = form_value
            values[field.name] = value
            if field.required and field.is_missing(value):
                errors.append(f'{field.label} is required.')
        return form, values, errors

    def _unique_slug(self, values, item=None):
        slug = slugify(values.get(self.schema.slug_source) or '')
        if not slug:
            raise ResourceError(f'Unable to generate a valid slug from {self.schema.slug_source}.')
        query = self.model.query.filter(self.model.slug == slug)
        if item is not None:
            query = query.filter(self.model.id != item.id)
        if query.first():
            raise ResourceError(f'Another {self.schema.label.lower()} already uses this {self.schema.slug_source}.')
        return slug

    def _commit(self, action):
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            current_app.logger.warning(f'{self.schema.name} {action} rejected: {exc.orig}')
            raise ResourceError(f'Unable to {action} {self.schema.label.lower()} due to conflicting data.') from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception(f'{self.schema.name} {action} failed.')
            raise ResourceError(f'Unable to {action} {self.schema.label.lower()}.') from exc

    def create(self, values, parent_id=None, owner_id=None):
        data = dict(values)
        if self.schema.slug_source:
            data['slug'] = self._unique_slug(data)
        if self.schema.parent_key:
            self.get_parent(parent_id)
            data[self.schema.parent_key] = parent_id
        if self.schema.owner_key:
            data[self.schema.owner_key] = owner_id
        item = self.model()
        for key, value in data.items():
            setattr(item, key, value)
        db.session.add(item)
        self._commit('create')
        current_app.logger.info(f'Created {self.schema.name} {item.id}.')
        return item

    def update(self, item_id, values, parent_id=None):
        item = self.get(item_id, parent_id)
        data = dict(values)
        if self.schema.slug_source:
            data['slug'] = self._unique_slug(data, item=item)
        for key, value in data.items():
            setattr(item, key, value)
        self._commit('update')
        current_app.logger.info(f'Updated {self.schema.name} {item.id}.')
        return item

    def delete(self, item_id, parent_id=None):
        item = self.get(item_id, parent_id)
        db.session.delete(item)
        self._commit('delete')
        current_app.logger.info(f'Deleted {self.schema.name} {item_id}.')


class ResourceViews:
    """Admin pages for one schema: list + form, save, confirm and delete."""

    def __init__(self, manager, url_prefix):
        self.manager = manager
        self.schema = manager.schema
        self.url_prefix = url_prefix

    def endpoint(self, action):
        return f'{self.schema.name}_{action}'

    def register(self, bp):
        prefix = self.url_prefix
        bp.add_url_rule(prefix, self.endpoint('list'), admin_required(self.list_view), methods=['GET'])
        bp.add_url_rule(prefix, self.endpoint('create'), admin_required(self.create_view), methods=['POST'])
        bp.add_url_rule(f'{prefix}/<int:item_id>', self.endpoint('update'), admin_required(self.update_view), methods=['POST'])
        bp.add_url_rule(
            f'{prefix}/<int:item_id>/delete',
            self.endpoint('delete'),
            admin_required(self.delete_view),
            methods=['GET', 'POST'],
        )

    def url(self, action, **values):
        return url_for(f'admin.{self.endpoint(action)}', **values)

    def _parent_args(self, kwargs):
        parent_id = kwargs.get('parent_id')
        return {'parent_id': parent_id} if self.schema.parent_key else {}

    def _load_parent(self, parent_id):
        if not self.schema.parent_key:
            return None
        try:
            return self.manager.get_parent(parent_id)
        except ResourceNotFound:
            abort(404)

    def render(self, form, editing=None, parent=None, status=200, **route_args):
        items = self.manager.list(parent_id=route_args.get('parent_id'))
        if editing is not None:
            action_url = self.url('update', item_id=editing.id, **route_args)
        else:
            action_url = self.url('create', **route_args)
        return render_template(
            'admin/resource.html',
            schema=self.schema,
            views=self,
            items=items,
            form=form,
            editing=editing,
            parent=parent,
            action_url=action_url,
            route_args=route_args,
            icon_names=icon_names(),
        ), status

    def list_view(self, **kwargs):
        route_args = self._parent_args(kwargs)
        parent = self._load_parent(route_args.get('parent_id'))
        editing = None
        edit_id = request.args.get('edit', type=int)
        if edit_id:
            try:
                editing = self.manager.get(edit_id, route_args.get('parent_id'))
            except ResourceNotFound:
                flash(f'{self.schema.label} not found.', 'danger')
        form = self.manager.form_from_item(editing) if editing is not None else self.manager.blank_form()
        return self.render(form, editing=editing, parent=parent, **route_args)

    def _stage_upload(self, form):
        """Upload the posted image and stage its public URL in ``form``.

        Returns False when an upload was attempted and failed.
        """
        field = self.schema.image_field
        if field is None:
            return True
        file = request.files.get(f'{field.name}_file')
        if not file or not file.filename:
            return True
        try:
            form[field.name] = upload_image(file, self.schema.image_prefix)
        except StorageError as exc:
            flash(f'Error uploading image: {exc}', 'danger')
            return False
        flash('Image uploaded successfully.', 'success')
        return True

    def _save(self, editing, route_args):
        parent = self._load_parent(route_args.get('parent_id'))
        form, values, errors = self.manager.parse_form(request.form)
        uploaded = self._stage_upload(form)
        image_field = self.schema.image_field
        if image_field is not None:
            image_url = clean_text(form[image_field.name], 1000)
            current_url = getattr(editing, image_field.name, None) if editing is not None else None
            if image_url and image_url != current_url and not image_url.startswith(public_url_prefix(self.schema.image_prefix)):
                errors.append(f'{image_field.label} must be uploaded through this form.')
                image_url = current_url or ''
                form[image_field.name] = image_url
            values[image_field.name] = image_url or None

        if request.form.get('action') == 'upload' or not uploaded:
            return self.render(form, editing=editing, parent=parent, status=200 if uploaded else 400, **route_args)

        if errors:
            for message in errors:
                flash(message, 'danger')
            return self.render(form, editing=editing, parent=parent, status=400, **route_args)

        try:
            if editing is not None:
                self.manager.update(editing.id, values, parent_id=route_args.get('parent_id'))
            else:
                auth = current_auth()
                owner_id = auth.user.id if auth.user is not None else None
                self.manager.create(values, parent_id=route_args.get('parent_id'), owner_id=owner_id)
        except ResourceError as exc:
            flash(str(exc), 'danger')
            return self.render(form, editing=editing, parent=parent, status=400, **route_args)

        verb = 'updated' if editing is not None else 'created'
        flash(f'{self.schema.label} {verb} successfully.', 'success')
        return redirect(self.url('list', **route_args))

    def create_view(self, **kwargs):
        return self._save(None, self._parent_args(kwargs))

    def update_view(self, item_id, **kwargs):
        route_args = self._parent_args(kwargs)
        try:
            editing = self.manager.get(item_id, route_args.get('parent_id'))
        except ResourceNotFound:
            abort(404)
        return self._save(editing, route_args)

    def delete_view(self, item_id, **kwargs):
        route_args = self._parent_args(kwargs)
        parent = self._load_parent(route_args.get('parent_id'))
        try:
            item = self.manager.get(item_id, route_args.get('parent_id'))
        except ResourceNotFound:
            abort(404)

        if request.method == 'GET' or request.form.get('confirm') != 'yes':
            return render_template(
                'admin/confirm_delete.html',
                schema=self.schema,
                views=self,
                item=item,
                parent=parent,
                route_args=route_args,
            )

        try:
            self.manager.delete(item.id, parent_id=route_args.get('parent_id'))
        except ResourceError as exc:
            flash(str(exc), 'danger')
            return redirect(self.url('list', **route_args))
        flash(f'{self.schema.label} deleted successfully.', 'success')
        return redirect(self.url('list', **route_args))
