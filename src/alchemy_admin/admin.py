import hmac
import logging
from functools import partial, wraps
from typing import Callable, Dict, List, Optional

from click import style
from markupsafe import Markup
from sqlalchemy.ext.asyncio import AsyncEngine

from .context import ContextManager, request
from .exceptions import ConfigError, NotFoundError, RegistrationError, StorageError
from .fields import CustomFields, FileField
from .models import Model, ModelGroup
from .registry import Registry
from .resources import ModelResource
from .templates import STATIC_DIR, create_environment, render
from .web import AdminRequest, Response, Route, file_response, html, not_found, redirect

log = logging.getLogger('Admin')


def login_required(handler):
    """Redirect anonymous requests to the log in page."""
    @wraps(handler)
    async def wrapper(self, req: AdminRequest, ctx) -> Response:
        if ctx.anonymous:
            return redirect(self.path + '/')
        return await handler(self, req, ctx)
    return wrapper


class Admin:
    """Generated admin panel: owns the model registry and serves its pages."""

    def __init__(self, context: ContextManager, username: str, password: str, path: str = '/admin',
                 title: str = 'Admin', name_transform: Callable[[str], str] = None,
                 template_dir: Optional[str] = None, cookie_name: str = 'admin', upload_dir: str = 'uploads'):
        if not username or not password:
            raise ConfigError('Username and/or password is missing')
        self.context = context
        self.username = username
        self.password = password
        self.path = path.rstrip('/')
        self.title = title or 'Admin'
        self.cookie_name = cookie_name
        self.custom_fields = CustomFields()
        self.custom_fields.register('file', partial(FileField, upload_dir))
        self.registry = Registry(name_transform, self.custom_fields)
        self.templates = create_environment(template_dir)
        self.resources: Dict[str, ModelResource] = {}
        self.engine: Optional[AsyncEngine] = None
        self._routes = self._build_routes()

    # Registration

    def group(self, name: str) -> ModelGroup:
        """Add a model group to the front page; register models on it."""
        return self.registry.group(name)

    def complete(self) -> None:
        """Resolve pending foreign keys; the admin serves only after this."""
        self.registry.complete()
        self.resources = {slug: ModelResource(model) for slug, model in self.registry.models.items()}

    async def create_all(self, engine: AsyncEngine = None) -> None:
        """Create the tables derived from the registered models."""
        engine = engine or self.engine
        async with engine.begin() as connection:
            await connection.run_sync(self.registry.metadata.create_all)

    @property
    def groups(self) -> List[ModelGroup]:
        return self.registry.groups

    def model_url(self, slug: str, action: str = '') -> str:
        if slug not in self.registry:
            return self.path
        return f'{self.path}/model/{slug}{action}'

    def _model(self, req: AdminRequest) -> Model:
        slug = req.route_vars.get('slug')
        if slug not in self.registry:
            raise NotFoundError(f'Model "{slug}" not found')
        return self.registry[slug]

    @staticmethod
    def _pk(req: AdminRequest) -> int:
        raw = req.route_vars.get('id')
        if raw is None:
            return 0
        try:
            pk = int(raw)
        except ValueError as exc:
            raise NotFoundError(f'Invalid identifier "{raw}"') from exc
        if pk <= 0:
            raise NotFoundError(f'Invalid identifier "{raw}"')
        return pk

    # Routing

    def _build_routes(self) -> List[Route]:
        any_method, post = frozenset(('GET', 'POST')), frozenset(('POST',))
        return [
            Route(any_method, '/', self.handle_index, 'index'),
            Route(any_method, '/logout/', self.handle_logout, 'logout'),
            Route(any_method, '/model/{slug}/', self.handle_list, 'list'),
            Route(any_method, '/model/{slug}/new/', self.handle_edit, 'new'),
            Route(post, '/model/{slug}/delete/{id}/', self.handle_delete, 'delete'),
            Route(any_method, '/model/{slug}/edit/{id}/', self.handle_edit, 'edit'),
            Route(any_method, '/model/{slug}/{view}/', self.handle_list, 'view'),
            Route(frozenset(('GET',)), '/static/{path:path}', self.handle_static, 'static', with_context=False),
        ]

    def routes(self) -> List[Route]:
        """The route table, patterns relative to `path`."""
        return list(self._routes)

    async def dispatch(self, req: AdminRequest) -> Response:
        """Find the handler of `req.path` and run it inside a request context."""
        if not self.registry.completed:
            raise RegistrationError('The admin is not completed, call `complete()` before serving')
        if not req.path.startswith(self.path):
            return not_found()
        relative = req.path[len(self.path):] or '/'
        if not relative.startswith('/static/') and not relative.endswith('/'):
            return redirect(req.path + '/')

        for route in self._routes:
            route_vars = route.match(relative)
            if route_vars is None:
                continue
            req.method = req.method.upper()
            if req.method not in route.methods:
                return Response(405, 'Method Not Allowed')
            req.route_vars = route_vars
            try:
                if not route.with_context:
                    return await route.handler(req)
                async with self.context(req.token, req) as ctx:
                    return await route.handler(req, ctx)
            except NotFoundError as exc:
                log.info('Not found: %s', style(exc.message, fg='yellow'))
                return not_found(exc.message)
            except StorageError as exc:
                return Response(exc.status_code, 'The request could not be completed.')
        return not_found()

    def render(self, ctx, template: str, context: dict, status: int = 200) -> Response:
        """Render `template` with the values every page needs."""
        context['title'] = self.title
        context['path'] = self.path
        context['q'] = request.form.get('q', '')
        context.setdefault('anonymous', False)
        context['messages'] = ctx.session.pop_messages() if ctx.session is not None else []
        return html(render(self.templates, template, context), status)

    # Handlers

    def check_credentials(self, username: str, password: str) -> bool:
        return (hmac.compare_digest(username.encode(), self.username.encode())
                and hmac.compare_digest(password.encode(), self.password.encode()))

    async def handle_index(self, req: AdminRequest, ctx) -> Response:
        if ctx.anonymous:
            error = None
            if req.method == 'POST':
                if self.check_credentials(req.form.get('username', ''), req.form.get('password', '')):
                    token = await ctx.login()
                    log.info('User %s logged in', style(self.username, fg='green'))
                    return redirect(self.path + '/', {self.cookie_name: token})
                error = 'Invalid username or password.'
            return self.render(ctx, 'login.html', {'anonymous': True, 'error': error})
        return self.render(ctx, 'index.html', {'groups': self.groups})

    @login_required
    async def handle_logout(self, req: AdminRequest, ctx) -> Response:
        await ctx.logout()
        return redirect(self.path + '/', {self.cookie_name: None})

    @login_required
    async def handle_list(self, req: AdminRequest, ctx) -> Response:
        model = self._model(req)
        q = req.form.get('q') or None
        rows = await self.resources[model.slug].get(q)
        fields = model.list_fields
        results = [(row[0], [field.render_string(value) for field, value in zip(fields, row)])
                   for row in rows]
        template = 'popup.html' if req.route_vars.get('view') == 'popup' else 'list.html'
        return self.render(ctx, template, {
            'name': model.name,
            'plural_name': model.plural_name,
            'slug': model.slug,
            'columns': model.list_columns,
            'results': results,
        })

    @login_required
    async def handle_edit(self, req: AdminRequest, ctx) -> Response:
        model = self._model(req)
        pk = self._pk(req)
        resource = self.resources[model.slug]

        values, errors = None, None
        if req.method == 'POST':
            data, errors = model.validate_submission(req.form, req.files)
            if not errors:
                return await self._save(req, ctx, model, pk, data)
            values = await resource.by_pk(pk) if pk else {}
            values.update({name: value for name, value in req.form.items() if value})
        elif pk:
            values = await resource.by_pk(pk)

        form = model.render_form(values, use_defaults=pk == 0, errors=errors,
                                 templates=self.templates, path=self.path)
        return self.render(ctx, 'edit.html', {
            'id': pk,
            'name': model.name,
            'slug': model.slug,
            'form': Markup(form),
            'errors': errors or {},
        })

    async def _save(self, req: AdminRequest, ctx, model: Model, pk: int, data: dict) -> Response:
        resource = self.resources[model.slug]
        if pk:
            await resource.put(pk, data)
        else:
            pk = await resource.post(data)
        ctx.session.add_message('success', f'{model.name} has been saved.')
        log.info('%s %s saved', style(model.name, fg='blue'), pk)
        if req.form.get('done') == 'true':
            return redirect(self.model_url(model.slug, '/'))
        return redirect(self.model_url(model.slug, f'/edit/{pk}/'))

    @login_required
    async def handle_delete(self, req: AdminRequest, ctx) -> Response:
        model = self._model(req)
        pk = self._pk(req)
        await self.resources[model.slug].delete(pk)
        ctx.session.add_message('success', f'{model.name} has been deleted.')
        return redirect(self.model_url(model.slug, '/'))

    async def handle_static(self, req: AdminRequest) -> Response:
        root = STATIC_DIR.resolve()
        target = (root / req.route_vars.get('path', '')).resolve()
        if not target.is_relative_to(root) or not target.is_file():
            return not_found()
        return file_response(target.read_bytes(), target.name)
