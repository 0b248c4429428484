"""Admin-managed tables and the form fields each manager edits."""
from .models import Industry, IndustryDetail, Post, Service
from .resources import (
    ICON,
    IMAGE,
    INTEGER,
    LINES,
    RICH_TEXT,
    TEXT,
    TEXTAREA,
    Field,
    ResourceManager,
    ResourceSchema,
)
from .storage import INDUSTRIES_PREFIX, POSTS_PREFIX

POSTS = ResourceSchema(
    name='posts',
    model=Post,
    label='Post',
    plural_label='News/Posts',
    fields=[
        Field('title', 'Title', TEXT, required=True, max_length=300),
        Field('category', 'Category', TEXT, required=True, max_length=120),
        Field('summary', 'Summary', TEXTAREA, required=True, max_length=2000),
        Field('content', 'Content', RICH_TEXT, max_length=100000),
        Field('image_url', 'Image', IMAGE, max_length=1000),
    ],
    order_by='published_date',
    descending=True,
    owner_key='created_by',
    image_prefix=POSTS_PREFIX,
    summary_fields=('category', 'summary'),
)

SERVICES = ResourceSchema(
    name='services',
    model=Service,
    label='Service',
    plural_label='Services',
    fields=[
        Field('title', 'Title', TEXT, required=True, max_length=200),
        Field('icon', 'Icon', ICON, required=True, default='MessageSquare', max_length=80,
              placeholder='e.g., MessageSquare, Cpu, Wrench'),
        Field('description', 'Description', TEXTAREA, required=True, max_length=10000),
        Field('features', 'Features', LINES, max_length=300, placeholder='Feature description'),
    ],
    order_by='created_at',
    summary_fields=('description',),
)

INDUSTRIES = ResourceSchema(
    name='industries',
    model=Industry,
    label='Industry',
    plural_label='Industries',
    fields=[
        Field('name', 'Name', TEXT, required=True, max_length=200),
        Field('icon', 'Icon', ICON, required=True, default='Factory', max_length=80,
              placeholder='e.g., Factory, Truck, Heart'),
        Field('description', 'Description', TEXTAREA, required=True, max_length=10000),
        Field('image_url', 'Image', IMAGE, max_length=1000),
    ],
    order_by='created_at',
    title_field='name',
    slug_source='name',
    image_prefix=INDUSTRIES_PREFIX,
    summary_fields=('slug', 'description'),
    child=('industry_details', 'Manage sections'),
)

INDUSTRY_DETAILS = ResourceSchema(
    name='industry_details',
    model=IndustryDetail,
    label='Section',
    plural_label='Industry Sections',
    fields=[
        Field('section_title', 'Section Title', TEXT, required=True, max_length=300),
        Field('content', 'Content', TEXTAREA, required=True, max_length=20000),
        Field('order_index', 'Order (0 = first)', INTEGER, required=True, default=0),
    ],
    order_by='order_index',
    title_field='section_title',
    parent_key='industry_id',
    parent_model=Industry,
    summary_fields=('order_index', 'content'),
)

SCHEMAS = (POSTS, SERVICES, INDUSTRIES, INDUSTRY_DETAILS)
MANAGERS = {schema.name: ResourceManager(schema) for schema in SCHEMAS}
