"""Tests for the factory registry and its option views."""

import pytest

import dataknobs_factory
from dataknobs_factory import DefaultAdapter, FactoryRegistry, ObjectAdapter, RegistryView
from dataknobs_factory.exceptions import (
    DefinitionError,
    FactoryNotFoundError,
    SyncResolutionError,
    ValidationError,
)
from dataknobs_factory.testing import create_test_registry
from factory_models import Author, Job, Person, Post, define_factories


class CountingAdapter(DefaultAdapter):
    """DefaultAdapter that counts destroy calls."""

    def __init__(self):
        self.destroyed = []

    async def destroy(self, instance, model):
        self.destroyed.append(instance)
        return await super().destroy(instance, model)


class FailingAdapter(ObjectAdapter):
    """ObjectAdapter whose destroy fails for instances marked with ``fail``."""

    def __init__(self):
        self.destroyed = []

    async def destroy(self, instance, model):
        if instance.get("fail"):
            raise RuntimeError(instance["fail"])
        self.destroyed.append(instance)
        return instance


class TestDefinitions:
    """Test defining and looking up factories."""

    def test_define_and_lookup(self, factory):
        """Test that defined factories can be found."""
        assert factory.has_factory("job")
        assert factory.get_factory("job").model is Job
        assert "person" in factory.list_factories()

    def test_duplicate_name(self, factory):
        """Test that a name cannot be defined twice."""
        with pytest.raises(DefinitionError, match="Factory job already defined"):
            factory.define("job", Job, {})

    def test_unknown_name(self, factory):
        """Test the error for an unknown factory."""
        with pytest.raises(FactoryNotFoundError, match="Invalid factory 'missing' requested") as exc_info:
            factory.get_factory("missing")

        assert isinstance(exc_info.value, LookupError)
        assert "job" in exc_info.value.context["available_keys"]

    def test_unknown_name_without_error(self, factory):
        """Test looking up an unknown factory without raising."""
        assert factory.get_factory("missing", raise_error=False) is None

    @pytest.mark.asyncio
    async def test_operations_on_unknown_name(self, factory):
        """Test that every operation rejects an unknown factory."""
        with pytest.raises(FactoryNotFoundError):
            await factory.attrs("missing")
        with pytest.raises(FactoryNotFoundError):
            await factory.create_many("missing", 2)
        with pytest.raises(FactoryNotFoundError):
            factory.build_sync("missing")

    def test_default_registry(self):
        """Test the package-level registry."""
        assert isinstance(dataknobs_factory.factory, FactoryRegistry)


class TestOperations:
    """Test attrs, build and create through the registry."""

    @pytest.mark.asyncio
    async def test_attrs(self, factory):
        """Test resolving attributes by name."""
        attrs = await factory.attrs("job", {"title": "Developer"})

        assert attrs["title"] == "Developer"
        assert factory.created == []

    @pytest.mark.asyncio
    async def test_create_and_clean_up(self):
        """Test creating an instance and destroying it exactly once."""
        registry = create_test_registry()
        define_factories(registry)
        adapter = registry.set_adapter(CountingAdapter())

        job = await registry.create("job", {"title": "Developer"})

        assert job.save_called
        assert job.title == "Developer"
        assert registry.created == [(adapter, job)]

        await registry.clean_up()
        assert job.destroy_called
        assert adapter.destroyed == [job]
        assert registry.created == []

        await registry.clean_up()
        assert adapter.destroyed == [job]

    @pytest.mark.asyncio
    async def test_build_persists_associations_only(self, factory):
        """Test that building a person creates its jobs but not the person."""
        person = await factory.build("person")

        assert isinstance(person, Person)
        assert not person.save_called
        assert person.name == "Person 1"
        assert person.age == 32
        assert isinstance(person.job, Job)
        assert person.job.save_called
        assert person.title == "Engineer"
        assert len(factory.created) == 2
        assert all(isinstance(instance, Job) for _, instance in factory.created)

    @pytest.mark.asyncio
    async def test_create_many_pads_overrides(self, factory):
        """Test creating several jobs with a short overrides list."""
        jobs = await factory.create_many("job", 3, [{"title": "Scientist"}])

        assert [job.title for job in jobs] == ["Scientist", "Engineer", "Engineer"]
        assert all(job.save_called for job in jobs)
        assert len(factory.created) == 3

    @pytest.mark.asyncio
    async def test_build_many_does_not_record(self, factory):
        """Test that built instances are not tracked for cleanup."""
        jobs = await factory.build_many("job", 2)

        assert len(jobs) == 2
        assert factory.created == []

    @pytest.mark.asyncio
    async def test_attrs_many_invalid_count(self, factory):
        """Test batch count validation through the registry."""
        with pytest.raises(ValidationError):
            await factory.attrs_many("job", 0)

    @pytest.mark.asyncio
    async def test_factory_hooks(self, factory):
        """Test factory-level hooks through the registry."""
        built = await factory.build("job_with_after_build")
        created = await factory.create("job_with_after_create")

        assert built.title == "Astronaut"
        assert created.after_create_called

    @pytest.mark.asyncio
    async def test_nested_associations(self, factory):
        """Test a company with employees and manager names."""
        company = await factory.create("company")

        assert len(company.employees) == 3
        assert all(isinstance(person, Person) for person in company.employees)
        assert len(company.managers) == 2
        assert all(name.startswith("Person ") for name in company.managers)
        # 5 people, each with 2 jobs, plus the company
        assert len(factory.created) == 5 + 10 + 1

    @pytest.mark.asyncio
    async def test_build_options(self, factory):
        """Test build options selecting parts of a template."""
        plain = await factory.build("user")
        social = await factory.build("user", None, {"facebook_user": True, "twitter_user": True})

        assert plain.facebook == {}
        assert plain.twitter == {}
        assert social.facebook == {
            "id": "dummy_fb_id_1",
            "token": "fb_token1234567",
            "email": "fb_email_1@fb.com",
            "name": "John Doe",
        }
        assert social.twitter == {"id": "dummy_tw_id_1"}
        assert [plain.username, social.username] == ["username_1", "username_2"]

    @pytest.mark.asyncio
    async def test_circular_factories(self, factory):
        """Test factories that refer to each other through build options."""
        author = await factory.create("author")
        post = await factory.create("post")

        assert len(author.posts) == 2
        assert all(isinstance(p, Post) and not hasattr(p, "author") for p in author.posts)
        assert isinstance(post.author, Author)
        assert not hasattr(post.author, "posts")


class TestAdapters:
    """Test adapter selection."""

    @pytest.mark.asyncio
    async def test_adapter_per_factory(self, factory):
        """Test binding an adapter to specific factories."""
        object_adapter = factory.set_adapter(ObjectAdapter(), ["job"])

        job = await factory.create("job")
        person = await factory.create("person")

        assert factory.get_adapter("job") is object_adapter
        assert factory.get_adapter("person") is factory.default_adapter
        assert not job.save_called
        assert person.save_called
        assert person.title == "Engineer"

    def test_single_name(self, factory):
        """Test binding an adapter by a single name."""
        adapter = factory.set_adapter(ObjectAdapter(), "job")
        assert factory.get_adapter("job") is adapter

    def test_default_adapter(self, factory):
        """Test replacing the default adapter."""
        adapter = factory.set_adapter(ObjectAdapter())
        assert factory.get_adapter() is adapter
        assert factory.get_adapter("job") is adapter


class TestRegistryHooks:
    """Test hooks in the registry options bag."""

    @pytest.mark.asyncio
    async def test_registry_hooks_run_after_factory_hooks(self):
        """Test ordering and arguments of registry-level hooks."""
        calls = []

        def after_build(instance, overrides, build_options, options):
            calls.append(("build", instance.title, overrides, build_options, options["owner"]))
            return instance

        async def after_create(instance, overrides, build_options, options):
            calls.append(("create", instance.after_create_called))
            instance.owner = options["owner"]
            return instance

        registry = create_test_registry(options={
            "after_build": after_build,
            "after_create": after_create,
            "owner": "alice",
        })
        define_factories(registry)

        await registry.build("job_with_after_build", {"company": "NASA"}, {"space": True})
        job = await registry.create("job_with_after_create")

        assert calls == [
            ("build", "Astronaut", {"company": "NASA"}, {"space": True}, "alice"),
            ("create", True),
        ]
        assert job.owner == "alice"

    @pytest.mark.asyncio
    async def test_registry_hooks_per_item(self, factory):
        """Test that batch hooks get each item's own arguments."""
        def after_create(instance, overrides, build_options, options):
            instance.tag = build_options.get("tag")
            return instance

        view = factory.with_options({"after_create": after_create})
        jobs = await view.create_many("job", 3, None, [{"tag": "a"}, {"tag": "b"}])

        assert [job.tag for job in jobs] == ["a", "b", None]

    @pytest.mark.asyncio
    async def test_with_options_replaces(self):
        """Test that a view replaces the registry options by default."""
        def after_create(instance, overrides, build_options, options):
            instance.owner = options.get("owner")
            return instance

        registry = create_test_registry(options={"after_create": after_create, "owner": "alice"})
        define_factories(registry)

        replaced = await registry.with_options({"owner": "bob"}).create("job")
        merged = await registry.with_options({"owner": "bob"}, merge=True).create("job")
        plain = await registry.create("job")

        assert not hasattr(replaced, "owner")
        assert merged.owner == "bob"
        assert plain.owner == "alice"
        assert registry.options["owner"] == "alice"

    @pytest.mark.asyncio
    async def test_views_share_state(self, factory):
        """Test that views share factories, sequences and cleanup."""
        view = factory.with_options({"owner": "bob"})

        assert isinstance(view, RegistryView)
        await view.create("job")
        first = await view.attrs("blogpost")
        second = await factory.attrs("blogpost")

        assert len(factory.created) == 1
        assert [first["words"], second["words"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_views_chain(self, factory):
        """Test chaining option overlays."""
        def after_build(instance, overrides, build_options, options):
            instance.context = (options.get("owner"), options.get("team"))
            return instance

        view = factory.with_options({"after_build": after_build, "owner": "bob"})
        chained = view.with_options({"team": "core"}, merge=True)
        replaced = view.with_options({"team": "core"})

        assert (await chained.build("job")).context == ("bob", "core")
        assert not hasattr(await replaced.build("job"), "context")
        assert (await view.build("job")).context == ("bob", None)

    @pytest.mark.asyncio
    async def test_failing_registry_hook_propagates(self, factory):
        """Test that registry hook errors reach the caller."""
        def after_build(instance, overrides, build_options, options):
            raise RuntimeError("registry hook failed")

        with pytest.raises(RuntimeError, match="registry hook failed"):
            await factory.with_options({"after_build": after_build}).build("job")


class TestCleanUp:
    """Test destroying created instances."""

    @pytest.mark.asyncio
    async def test_destroys_everything(self, factory):
        """Test that every created instance is destroyed."""
        person = await factory.create("person")
        await factory.clean_up()

        assert person.destroy_called
        assert person.job.destroy_called
        assert factory.created == []

    @pytest.mark.asyncio
    async def test_first_failure_raised_after_all_destroys(self):
        """Test that a failed destroy does not stop the others."""
        registry = create_test_registry(use_object_adapter=True)
        adapter = registry.set_adapter(FailingAdapter())
        registry.define("thing", dict, {"fail": None})

        await registry.create_many("thing", 4, [{}, {"fail": "first"}, {"fail": "second"}, {}])

        with pytest.raises(RuntimeError, match="first"):
            await registry.clean_up()

        assert len(adapter.destroyed) == 2
        assert registry.created == []

    @pytest.mark.asyncio
    async def test_resets_sequences(self, factory):
        """Test that cleanup restarts sequences."""
        await factory.create_many("blogpost", 2)
        await factory.cleanup()

        blogpost = await factory.create("blogpost")
        assert blogpost.words == 1

    @pytest.mark.asyncio
    async def test_records_across_nested_creates(self, factory):
        """Test that instances created through associations are recorded."""
        await factory.create("author")

        recorded = [type(instance) for _, instance in factory.created]
        assert recorded.count(Author) == 1
        assert recorded.count(Post) == 2


class TestIsolation:
    """Test that registries are independent."""

    @pytest.mark.asyncio
    async def test_registries_do_not_share_state(self):
        """Test factories, sequences and cleanup lists per registry."""
        first = create_test_registry()
        second = create_test_registry()
        define_factories(first)

        await first.create("blogpost")

        assert not second.has_factory("blogpost")
        assert second.created == []
        define_factories(second)
        assert (await second.attrs("blogpost"))["words"] == 1


class TestSyncOperations:
    """Test the synchronous registry operations."""

    def test_build_sync(self, factory):
        """Test building without an event loop."""
        job = factory.build_sync("job_with_after_build", {"company": "NASA"})

        assert job.title == "Astronaut"
        assert job.company == "NASA"
        assert factory.created == []

    def test_attrs_sync(self, factory):
        """Test resolving attributes without an event loop."""
        attrs = factory.attrs_sync("blogpost")
        assert attrs == {
            "heading": "The Importance of Being Ernest",
            "title": "The Importance of Being Ernest",
            "words": 1,
        }

    def test_async_association_fails(self, factory):
        """Test that associations cannot be resolved synchronously."""
        with pytest.raises(SyncResolutionError):
            factory.build_sync("person")

    def test_async_association_can_be_overridden(self, factory):
        """Test that overriding async leaves makes a sync build possible."""
        person = factory.build_sync("person", {"job": None, "title": "Pilot"})
        assert person.title == "Pilot"
        assert person.job is None

    def test_registry_hook_on_view(self, factory):
        """Test a synchronous registry hook through a view."""
        def after_build(instance, overrides, build_options, options):
            instance.owner = options["owner"]
            return instance

        job = factory.with_options({"after_build": after_build, "owner": "bob"}).build_sync("job")
        assert job.owner == "bob"

    def test_async_registry_hook_fails(self, factory):
        """Test that an async registry hook fails on the sync path."""
        async def after_build(instance, overrides, build_options, options):
            return instance

        with pytest.raises(SyncResolutionError):
            factory.with_options({"after_build": after_build}).build_sync("job")


class TestFromConfig:
    """Test creating registries from settings."""

    def test_from_dict(self, monkeypatch):
        """Test a registry configured from a dictionary."""
        for var in ("FAKER_SEED", "FAKER_LOCALE", "DEFAULT_ADAPTER"):
            monkeypatch.delenv(f"DATAKNOBS_FACTORY_{var}", raising=False)

        registry = FactoryRegistry.from_config(
            {"faker_seed": 7, "default_adapter": "object", "options": {"owner": "alice"}},
            name="configured",
        )

        assert registry.name == "configured"
        assert isinstance(registry.default_adapter, ObjectAdapter)
        assert registry.options == {"owner": "alice"}
        assert registry.chance("name")() == FactoryRegistry.from_config({"faker_seed": 7}).chance("name")()

    def test_options_argument_overrides_settings(self):
        """Test that constructor options are merged over settings options."""
        registry = FactoryRegistry(
            settings=dataknobs_factory.FactorySettings(options={"owner": "alice", "team": "core"}),
            options={"owner": "bob"},
        )
        assert registry.options == {"owner": "bob", "team": "core"}
