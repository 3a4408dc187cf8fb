"""Tests for ComponentRegistry: lifecycle transitions, events, component table."""

import asyncio
import logging

from bufferui import (
    Component,
    ComponentRegistry,
    Phase,
    RegistryEventType,
    get_lifecycle_components,
    register_lifecycle,
    text,
    trigger_event,
    trigger_lifecycle,
)


def _recording(reg, id="c1", events=None):
    calls = []
    reg.register_lifecycle(
        id,
        on_mount=lambda: calls.append(("mount",)),
        on_update=lambda new, old: calls.append(("update", new, old)),
        on_unmount=lambda: calls.append(("unmount",)),
        events=events,
    )
    return calls


class TestMount:
    def test_mount_runs_once(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        assert reg.trigger_lifecycle(Phase.MOUNT, "c1") is True
        assert reg.trigger_lifecycle(Phase.MOUNT, "c1") is False
        assert calls == [("mount",)]
        assert reg.get_lifecycle("c1").is_mounted

    def test_mounted_before_hook_runs(self):
        reg = ComponentRegistry()
        seen = []
        reg.register_lifecycle("c1", on_mount=lambda: seen.append(reg.get_lifecycle("c1").is_mounted))
        reg.trigger_lifecycle("mount", "c1")
        assert seen == [True]

    def test_mount_seeds_last_vnode(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        first, second = text("a"), text("b")
        reg.trigger_lifecycle(Phase.MOUNT, "c1", first)
        reg.trigger_lifecycle(Phase.UPDATE, "c1", second)
        assert calls[-1] == ("update", second, first)

    def test_unknown_id(self):
        reg = ComponentRegistry()
        assert reg.trigger_lifecycle(Phase.MOUNT, "missing") is False

    def test_unknown_phase_is_logged(self, caplog):
        reg = ComponentRegistry()
        calls = _recording(reg)
        with caplog.at_level(logging.WARNING, logger="bufferui.registry"):
            assert reg.trigger_lifecycle("explode", "c1") is False
        assert calls == []
        assert "Unknown lifecycle phase" in caplog.text


class TestUpdate:
    def test_update_before_mount_is_noop(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        assert reg.trigger_lifecycle(Phase.UPDATE, "c1", text("x")) is False
        assert calls == []
        assert reg.get_lifecycle("c1").last_vnode is None

    def test_update_requires_vnode(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        reg.trigger_lifecycle(Phase.MOUNT, "c1")
        assert reg.trigger_lifecycle(Phase.UPDATE, "c1") is False
        assert calls == [("mount",)]

    def test_update_passes_new_and_previous(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        reg.trigger_lifecycle(Phase.MOUNT, "c1")
        v1, v2 = text("one"), text("two")
        reg.trigger_lifecycle(Phase.UPDATE, "c1", v1)
        reg.trigger_lifecycle(Phase.UPDATE, "c1", v2)
        assert calls == [("mount",), ("update", v1, None), ("update", v2, v1)]
        assert reg.get_lifecycle("c1").last_vnode is v2


class TestUnmount:
    def test_unmount_always_dispatches(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        assert reg.trigger_lifecycle(Phase.UNMOUNT, "c1") is True
        assert calls == [("unmount",)]

    def test_unmount_keeps_entry(self):
        reg = ComponentRegistry()
        _recording(reg)
        reg.trigger_lifecycle(Phase.MOUNT, "c1")
        reg.trigger_lifecycle(Phase.UNMOUNT, "c1")
        entry = reg.get_lifecycle("c1")
        assert entry is not None
        assert not entry.is_mounted
        assert "c1" in reg.get_lifecycle_components()

    def test_full_cycle_runs_each_hook_once(self):
        reg = ComponentRegistry()
        calls = _recording(reg, id="x")
        v = text("v")
        reg.trigger_lifecycle(Phase.MOUNT, "x")
        reg.trigger_lifecycle(Phase.UPDATE, "x", v)
        reg.trigger_lifecycle(Phase.UNMOUNT, "x")
        reg.trigger_lifecycle(Phase.UPDATE, "x", v)  # unmounted, ignored
        assert calls == [("mount",), ("update", v, None), ("unmount",)]

    def test_repeated_unmounts_each_dispatch(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        reg.trigger_lifecycle(Phase.MOUNT, "c1")
        reg.trigger_lifecycle(Phase.UNMOUNT, "c1")
        reg.trigger_lifecycle(Phase.UNMOUNT, "c1")
        assert calls == [("mount",), ("unmount",), ("unmount",)]

    def test_remount_after_unmount(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        reg.trigger_lifecycle(Phase.MOUNT, "c1")
        reg.trigger_lifecycle(Phase.UNMOUNT, "c1")
        reg.trigger_lifecycle(Phase.MOUNT, "c1")
        assert calls == [("mount",), ("unmount",), ("mount",)]


class TestFailureBoundary:
    def test_failing_hook_is_logged_and_state_advances(self, caplog):
        reg = ComponentRegistry()

        def boom():
            raise RuntimeError("mount failed")

        reg.register_lifecycle("c1", on_mount=boom)
        with caplog.at_level(logging.ERROR, logger="bufferui.registry"):
            reg.trigger_lifecycle(Phase.MOUNT, "c1")
        assert reg.get_lifecycle("c1").is_mounted
        assert "Error in mount on_mount for component c1" in caplog.text

    def test_one_failure_does_not_block_others(self, caplog):
        """A throwing on_mount for one component leaves the next one unaffected."""
        reg = ComponentRegistry()
        ran = []

        def boom():
            raise RuntimeError("first failed")

        reg.register_lifecycle("first", on_mount=boom)
        reg.register_lifecycle("second", on_mount=lambda: ran.append("second"))
        with caplog.at_level(logging.ERROR, logger="bufferui.registry"):
            for id in ("first", "second"):
                reg.trigger_lifecycle(Phase.MOUNT, id)
        assert ran == ["second"]
        assert "first" in caplog.text


class TestRegistration:
    def test_reregister_preserves_state(self):
        reg = ComponentRegistry()
        _recording(reg)
        vnode = text("x")
        reg.trigger_lifecycle(Phase.MOUNT, "c1", vnode)

        calls = []
        reg.register_lifecycle("c1", on_mount=lambda: calls.append("again"))
        entry = reg.get_lifecycle("c1")
        assert entry.is_mounted
        assert entry.last_vnode is vnode
        assert reg.trigger_lifecycle(Phase.MOUNT, "c1") is False
        assert calls == []

    def test_reregister_replaces_hooks(self):
        reg = ComponentRegistry()
        calls = _recording(reg)
        new_calls = []
        reg.register_lifecycle("c1", on_unmount=lambda: new_calls.append("unmount"))
        reg.trigger_lifecycle(Phase.UNMOUNT, "c1")
        assert calls == []
        assert new_calls == ["unmount"]

    def test_lifecycle_components_in_registration_order(self):
        reg = ComponentRegistry()
        for id in ("b", "a", "c"):
            reg.register_lifecycle(id)
        assert reg.get_lifecycle_components() == ["b", "a", "c"]


class TestEvents:
    def test_handler_receives_payload(self):
        reg = ComponentRegistry()
        got = []
        _recording(reg, events={"click": got.append})
        assert reg.trigger_event("c1", "click", {"x": 1}) is True
        assert got == [{"x": 1}]

    def test_missing_handler_is_silent(self):
        reg = ComponentRegistry()
        _recording(reg)
        assert reg.trigger_event("c1", "click") is False
        assert reg.trigger_event("nobody", "click") is False

    def test_failing_handler_is_logged(self, caplog):
        reg = ComponentRegistry()

        def boom(payload):
            raise ValueError("bad payload")

        _recording(reg, events={"submit": boom})
        with caplog.at_level(logging.ERROR, logger="bufferui.registry"):
            assert reg.trigger_event("c1", "submit", None) is False
        assert "Error in submit event handler for component c1" in caplog.text
        assert "bad payload" in caplog.text

    def test_failing_handler_does_not_block_other_events(self, caplog):
        reg = ComponentRegistry()
        hovered = []

        def boom(payload):
            raise RuntimeError("click failed")

        reg.register_lifecycle("x", events={"click": boom, "hover": hovered.append})
        with caplog.at_level(logging.ERROR, logger="bufferui.registry"):
            reg.trigger_event("x", "click")
        assert reg.trigger_event("x", "hover", "over") is True
        assert hovered == ["over"]

    def test_bind_events_merges(self):
        reg = ComponentRegistry()
        got = []
        _recording(reg, events={"click": lambda p: got.append("click")})
        reg.bind_events("c1", {"key": lambda p: got.append("key")})
        reg.trigger_event("c1", "click")
        reg.trigger_event("c1", "key")
        assert got == ["click", "key"]

    def test_bind_events_creates_entry(self):
        reg = ComponentRegistry()
        got = []
        reg.bind_events("fresh", {"click": got.append})
        reg.trigger_event("fresh", "click", 1)
        assert got == [1]
        assert not reg.get_lifecycle("fresh").is_mounted

    def test_unbind_events(self):
        reg = ComponentRegistry()
        got = []
        reg.bind_events("c1", {"click": got.append, "key": got.append})
        reg.unbind_events("c1", {"click", "missing"})
        assert reg.trigger_event("c1", "click", 1) is False
        assert reg.trigger_event("c1", "key", 2) is True
        assert got == [2]
        reg.unbind_events("nobody", ["click"])


class TestComponentTable:
    def test_add_and_get(self):
        reg = ComponentRegistry()
        added = []
        reg.on(RegistryEventType.COMPONENT_ADDED, added.append)
        comp = Component("b1", "button", {"label": "OK"})
        reg.add(comp)
        assert reg.get("b1") is comp
        assert added == [comp]

    def test_update_unknown_falls_back_to_add(self):
        reg = ComponentRegistry()
        added, updated = [], []
        reg.on(RegistryEventType.COMPONENT_ADDED, added.append)
        reg.on(RegistryEventType.COMPONENT_UPDATED, lambda new, old: updated.append((new, old)))
        comp = Component("b1", "button")
        reg.update(comp)
        assert added == [comp]
        assert updated == []

    def test_update_emits_new_and_existing(self):
        reg = ComponentRegistry()
        updated = []
        reg.on(RegistryEventType.COMPONENT_UPDATED, lambda new, old: updated.append((new, old)))
        old = Component("b1", "button", {"label": "OK"})
        new = Component("b1", "button", {"label": "Cancel"})
        reg.add(old)
        reg.update(new)
        assert updated == [(new, old)]
        assert reg.get("b1") is new

    def test_update_triggers_update_lifecycle(self):
        reg = ComponentRegistry()
        calls = _recording(reg, id="b1")
        reg.trigger_lifecycle(Phase.MOUNT, "b1")
        reg.add(Component("b1", "button"))
        new = Component("b1", "button", {"x": 1})
        reg.update(new)
        assert calls[-1] == ("update", new, None)

    def test_remove(self):
        reg = ComponentRegistry()
        removed = []
        reg.on(RegistryEventType.COMPONENT_REMOVED, removed.append)
        calls = _recording(reg, id="b1")
        reg.add(Component("b1", "button"))
        assert reg.remove("b1") is True
        assert reg.remove("b1") is False
        assert reg.get("b1") is None
        assert removed == ["b1"]
        assert calls == [("unmount",)]

    def test_get_by_type(self):
        reg = ComponentRegistry()
        ok = Component("ok", "button")
        cancel = Component("cancel", "button")
        reg.add(ok)
        reg.add(Component("title", "text"))
        reg.add(cancel)
        assert reg.get_by_type("button") == [ok, cancel]
        assert reg.get_by_type("list") == []

    def test_clear_unmounts_mounted_entries(self):
        reg = ComponentRegistry()
        mounted_calls = _recording(reg, id="mounted")
        idle_calls = _recording(reg, id="idle")
        reg.trigger_lifecycle(Phase.MOUNT, "mounted")
        reg.add(Component("mounted", "panel"))
        cleared = []
        reg.on(RegistryEventType.REGISTRY_CLEARED, lambda: cleared.append(True))

        reg.clear()
        assert mounted_calls == [("mount",), ("unmount",)]
        assert idle_calls == []
        assert reg.get_lifecycle_components() == []
        assert reg.get("mounted") is None
        assert cleared == [True]


class TestListeners:
    def test_unsubscribe(self):
        reg = ComponentRegistry()
        seen = []
        unsubscribe = reg.on(RegistryEventType.COMPONENT_ADDED, seen.append)
        reg.add(Component("a", "x"))
        unsubscribe()
        unsubscribe()  # second call is harmless
        reg.add(Component("b", "x"))
        assert [c.id for c in seen] == ["a"]

    def test_listener_error_is_logged(self, caplog):
        reg = ComponentRegistry()
        seen = []

        def boom(component):
            raise RuntimeError("listener failed")

        reg.on(RegistryEventType.COMPONENT_ADDED, boom)
        reg.on(RegistryEventType.COMPONENT_ADDED, seen.append)
        with caplog.at_level(logging.ERROR, logger="bufferui.registry"):
            reg.add(Component("a", "x"))
        assert len(seen) == 1
        assert "Error in componentAdded listener" in caplog.text


class TestAsyncHooks:
    def test_hooks_for_one_component_complete_in_order(self):
        reg = ComponentRegistry()
        order = []

        async def slow_mount():
            await asyncio.sleep(0.02)
            order.append("mount")

        async def fast_update(new, old):
            order.append("update")

        reg.register_lifecycle("c1", on_mount=slow_mount, on_update=fast_update)

        async def main():
            reg.trigger_lifecycle(Phase.MOUNT, "c1")
            reg.trigger_lifecycle(Phase.UPDATE, "c1", text("x"))
            await reg.drain("c1")

        asyncio.run(main())
        assert order == ["mount", "update"]

    def test_drain_all(self):
        reg = ComponentRegistry()
        done = []

        async def hook():
            await asyncio.sleep(0)
            done.append(True)

        reg.register_lifecycle("a", on_mount=hook)
        reg.register_lifecycle("b", on_mount=hook)

        async def main():
            reg.trigger_lifecycle(Phase.MOUNT, "a")
            reg.trigger_lifecycle(Phase.MOUNT, "b")
            await reg.drain()

        asyncio.run(main())
        assert done == [True, True]

    def test_without_running_loop_hook_completes_inline(self):
        reg = ComponentRegistry()
        done = []

        async def hook():
            done.append(True)

        reg.register_lifecycle("c1", on_mount=hook)
        reg.trigger_lifecycle(Phase.MOUNT, "c1")
        assert done == [True]

    def test_failing_async_hook_is_logged(self, caplog):
        reg = ComponentRegistry()

        async def boom():
            raise RuntimeError("async mount failed")

        reg.register_lifecycle("c1", on_mount=boom)

        async def main():
            reg.trigger_lifecycle(Phase.MOUNT, "c1")
            await reg.drain()

        with caplog.at_level(logging.ERROR, logger="bufferui.registry"):
            asyncio.run(main())
        assert "async mount failed" in caplog.text
        assert reg.get_lifecycle("c1").is_mounted


class TestModuleHelpers:
    def test_default_registry_helpers(self):
        calls = []
        register_lifecycle("global", on_mount=lambda: calls.append("mount"), events={"ping": calls.append})
        assert "global" in get_lifecycle_components()
        trigger_lifecycle(Phase.MOUNT, "global")
        trigger_event("global", "ping", "pong")
        assert calls == ["mount", "pong"]
