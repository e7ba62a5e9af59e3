"""Tests for merging declaration blocks into an existing flow."""

from __future__ import annotations

import pytest

from circulator import DeclarationError, Flow, Transition, invoke
from circulator.guards import All, Always
from circulator.table import EffectChain, blend, replace


class Doc:
    def __init__(self, status="pending"):
        self.status = status
        self.log = []
        self.allowed = True


def base_effect(doc):
    doc.log.append("base")


def extra_effect(doc):
    doc.log.append("extra")


def doc_allowed(doc):
    return doc.allowed


def base_block(flow):
    with flow.state("pending"):
        flow.action("approve", to="approved", effect=base_effect)
        flow.action("reject", to="rejected")


def extension_block(flow):
    with flow.state("pending"):
        flow.action("approve", to="fast_tracked", effect=extra_effect)
    with flow.state("approved"):
        flow.action("archive", to="archived")


def guard_only_block(flow):
    with flow.state("pending"):
        flow.action("approve", allow_if=doc_allowed, effect=extra_effect)


class TestReplace:
    def test_new_rules_are_adopted(self, registry):
        """Pairs the flow lacks come straight from the incoming block."""
        flow = Flow(Doc, "status", base_block, registry=registry)
        flow.merge(extension_block)

        assert flow.transition("archive", "approved").to == "archived"
        assert flow.transition("reject", "pending").to == "rejected"

    def test_conflicting_rule_is_replaced_wholesale(self, registry):
        """Last applied wins: destination and effect both come from the block."""
        flow = Flow(Doc, "status", base_block, registry=registry)
        flow.merge(extension_block)

        rule = flow.transition("approve", "pending")
        assert rule == Transition(to="fast_tracked", effect=extra_effect)

    def test_merging_twice_equals_merging_once(self, registry):
        """Replace is idempotent."""
        once = Flow(Doc, "status", base_block, registry=registry)
        once.merge(extension_block)

        twice = Flow(Doc, "status", base_block, registry=registry)
        twice.merge(extension_block).merge(extension_block)

        assert once.table == twice.table

    def test_replacing_without_destination_fails(self, registry):
        """A rule with no destination cannot overwrite under replace."""
        flow = Flow(Doc, "status", base_block, registry=registry)

        with pytest.raises(DeclarationError, match="has no destination"):
            flow.merge(guard_only_block)

    def test_policy_function(self):
        """replace() returns the incoming rule."""
        old, new = Transition(to="a"), Transition(to="b")
        assert replace(old, new) is new


class TestBlend:
    def test_effects_chain_in_order(self, registry):
        """Existing effect runs first, then the incoming one."""
        flow = Flow(Doc, "status", base_block, registry=registry, merge_policy="blend")
        flow.merge(extension_block)
        doc = Doc()

        invoke(flow, doc, "approve")

        assert doc.log == ["base", "extra"]
        assert doc.status == "fast_tracked"

    def test_unspecified_destination_keeps_existing(self, registry):
        """An extension may add a guard without restating the destination."""
        flow = Flow(Doc, "status", base_block, registry=registry, merge_policy="blend")
        flow.merge(guard_only_block)

        rule = flow.transition("approve", "pending")
        assert rule.to == "approved"
        assert rule.guard == Always(doc_allowed)

    def test_guards_are_conjoined(self, registry):
        """Both the existing and the incoming guard must pass."""

        def guarded(flow):
            with flow.state("pending"):
                flow.action("approve", to="approved", allow_if=lambda doc: True)

        flow = Flow(Doc, "status", guarded, registry=registry, merge_policy="blend")
        flow.merge(guard_only_block)

        assert isinstance(flow.transition("approve", "pending").guard, All)

        blocked = Doc()
        blocked.allowed = False
        assert invoke(flow, blocked, "approve") is None
        assert blocked.status == "pending"
        assert invoke(flow, Doc(), "approve") == "approved"

    def test_blended_guard_names_are_all_reported(self, registry):
        """guards_for sees the names from both sides of a blend."""

        class Checked(Doc):
            def is_open(self):
                return True

            def is_clear(self):
                return True

            def is_signed(self):
                return True

        def listed(flow):
            with flow.state("pending"):
                flow.action("approve", to="approved", allow_if=["is_open", "is_clear"])

        def signed(flow):
            with flow.state("pending"):
                flow.action("approve", allow_if=["is_signed"])

        flow = Flow(Checked, "status", listed, registry=registry, merge_policy="blend")
        flow.merge(signed)

        assert flow.guards_for("approve", "pending") == ["is_open", "is_clear", "is_signed"]
        assert invoke(flow, Checked(), "approve") == "approved"

    def test_blend_is_not_idempotent(self, registry):
        """Merging the same block twice runs its effect twice."""
        once = Flow(Doc, "status", base_block, registry=registry, merge_policy="blend")
        once.merge(extension_block)

        twice = Flow(Doc, "status", base_block, registry=registry, merge_policy="blend")
        twice.merge(extension_block).merge(extension_block)

        assert once.table != twice.table

        doc = Doc()
        invoke(twice, doc, "approve")
        assert doc.log == ["base", "extra", "extra"]

    def test_policy_function(self):
        """blend() on bare rules."""
        merged = blend(Transition(to="a", effect=base_effect), Transition(effect=extra_effect))

        assert merged.to == "a"
        assert isinstance(merged.effect, EffectChain)
        assert merged.effect.effects == (base_effect, extra_effect)


def test_custom_policy_callable(registry):
    """Any callable(existing, incoming) can resolve conflicts."""

    def keep_existing(existing, incoming):
        return existing

    flow = Flow(Doc, "status", base_block, registry=registry, merge_policy=keep_existing)
    flow.merge(extension_block)

    assert flow.transition("approve", "pending").to == "approved"
    assert flow.transition("archive", "approved").to == "archived"


def test_unknown_policy_name_rejected(registry):
    """Policy names are checked when the flow is built."""
    with pytest.raises(DeclarationError, match="Unknown merge policy"):
        Flow(Doc, "status", base_block, registry=registry, merge_policy="additive")


def test_failed_merge_leaves_flow_untouched(registry):
    """A block that fails halfway changes nothing."""
    flow = Flow(Doc, "status", base_block, registry=registry)
    before = flow.table.copy()

    def broken(flow):
        with flow.state("pending"):
            flow.action("approve", to="overwritten")
        flow.action("orphan", to="nowhere")

    with pytest.raises(DeclarationError):
        flow.merge(broken)

    assert flow.table == before
    assert "overwritten" not in flow.states


def test_merge_adopts_incoming_handlers(registry):
    """A merged block's around and no_action replace the flow's."""

    def wrap(doc, transition):
        transition()

    def quiet(doc, attribute, action):
        pass

    def handlers(flow):
        flow.around(wrap)
        flow.no_action(quiet)

    flow = Flow(Doc, "status", base_block, registry=registry)
    flow.merge(handlers)

    assert flow.wrapper is wrap
    assert flow.missing_handler is quiet
    assert invoke(flow, Doc(status="archived"), "approve") is None


def test_merge_keeps_handlers_when_block_sets_none(registry):
    """A block without handlers leaves the existing ones alone."""

    def wrap(doc, transition):
        transition()

    def block(flow):
        base_block(flow)
        flow.around(wrap)

    flow = Flow(Doc, "status", block, registry=registry)
    flow.merge(extension_block)

    assert flow.wrapper is wrap


def test_merge_notifies_listeners(registry):
    """on_change listeners run after each merge."""
    seen = []
    flow = Flow(Doc, "status", base_block, registry=registry)
    flow.on_change(lambda changed: seen.append(sorted(changed.actions())))

    flow.merge(extension_block)

    assert seen == [["approve", "archive", "reject"]]
