"""Tests for host classes: generated members and flow helpers."""

from __future__ import annotations

import pytest

from circulator import (
    DEFAULT_EXTENSIONS,
    Circulator,
    DeclarationError,
    Flow,
    UnknownFlowError,
    define_flow,
)


def review_flow(flow):
    with flow.state("pending"):
        flow.action("approve", to="approved")
        flow.action("finalize", to="final")


def status_flow(flow):
    with flow.state("draft"):
        flow.action("submit", to="submitted")
    with flow.state("submitted"):
        flow.action("publish", to="published", allow_if={"review_status": ["approved", "final"]})
        flow.action("retract", to="draft", allow_if=["is_author", "is_unlocked"])
    flow.state("published")


class Article(Circulator, flows={"review_status": review_flow, "status": status_flow}):
    def __init__(self, status="draft", review_status="pending", author=True, locked=False):
        self.status = status
        self.review_status = review_status
        self.author = author
        self.locked = locked

    def is_author(self):
        return self.author

    def is_unlocked(self):
        return not self.locked


class TestGeneratedMembers:
    def test_action_methods_exist(self):
        """Each action gets <attribute>_<action>."""
        for name in ("status_submit", "status_publish", "status_retract", "review_status_approve"):
            assert callable(getattr(Article, name))

    def test_action_method_runs_transition(self):
        article = Article()

        assert article.status_submit() == "submitted"
        assert article.status == "submitted"

    def test_state_predicates(self):
        """Each declared state gets <attribute>_is_<state>."""
        article = Article(status="submitted")

        assert article.status_is_submitted() is True
        assert article.status_is_draft() is False
        assert article.status_is_published() is False

    def test_cross_attribute_guard_between_host_flows(self):
        """Sibling flows on the same class satisfy dependency guards."""
        article = Article(status="submitted")

        assert article.status_publish() is None
        article.review_status_approve()
        assert article.status_publish() == "published"

    def test_strict_keyword(self):
        """mode= is passed through generated methods."""
        with pytest.raises(Article.InvalidTransition):
            Article(status="published").status_submit(mode="strict")

    def test_target_keyword(self):
        """target= changes another object."""
        asker, other = Article(), Article()

        asker.status_submit(target=other)

        assert other.status == "submitted"
        assert asker.status == "draft"

    def test_callback_keyword(self):
        """callback= runs after the commit."""
        seen = []
        article = Article()

        article.status_submit(callback=lambda a: seen.append(a.status))

        assert seen == ["submitted"]

    def test_members_carry_names(self):
        assert Article.status_submit.__name__ == "status_submit"
        assert Article.status_is_draft.__name__ == "status_is_draft"


class TestHelpers:
    def test_flow_runs_action_by_name(self):
        article = Article()

        assert article.flow("submit", "status") == "submitted"

    def test_flow_with_unknown_attribute_raises(self):
        with pytest.raises(UnknownFlowError, match="No flow declared for 'color'"):
            Article().flow("paint", "color")

    def test_available_flows(self):
        """Only actions whose guards pass are listed."""
        assert Article().available_flows("status") == ["submit"]
        assert Article(status="submitted").available_flows("status") == ["retract"]
        assert Article(status="submitted", locked=True).available_flows("status") == []
        assert Article().available_flows("color") == []

    def test_available_flow(self):
        article = Article(status="submitted", review_status="final")

        assert article.available_flow("status", "publish") is True
        assert article.available_flow("status", "submit") is False
        assert article.available_flow("color", "paint") is False

    def test_guards_for_lists_named_guards(self):
        """List guards report their method names; other guards report None."""
        article = Article(status="submitted")

        assert article.guards_for("status", "retract") == ["is_author", "is_unlocked"]
        assert article.guards_for("status", "publish") is None
        assert article.guards_for("status", "submit") is None

    def test_flows_returns_a_copy(self):
        flows = Article.flows()

        assert set(flows) == {"review_status", "status"}
        assert all(isinstance(f, Flow) for f in flows.values())
        flows.clear()
        assert Article.flows()


class TestDeclaration:
    def test_existing_methods_are_not_overwritten(self):
        """A method the class defines wins over the generated one."""

        def block(flow):
            with flow.state("pending"):
                flow.action("approve", to="approved")

        class Custom(Circulator, flows={"status": block}):
            def __init__(self):
                self.status = "pending"

            def status_approve(self):
                return "custom"

        custom = Custom()

        assert custom.status_approve() == "custom"
        assert custom.flow("approve", "status") == "approved"

    def test_member_collision_between_flows_raises(self):
        """Two flows generating the same name is a declaration error."""

        def first(flow):
            flow.action("b_c", to="done", from_="start")

        def second(flow):
            flow.action("c", to="done", from_="start")

        class Clash(Circulator, flows={"a": first}):
            pass

        with pytest.raises(DeclarationError, match="Method already defined: a_b_c"):
            Clash.define_flow("a_b", second)

        assert "a_b" not in Clash.flows()

    def test_define_flow_decorator(self):
        """define_flow without a block works as a decorator."""

        class Ticket(Circulator):
            def __init__(self):
                self.priority = "low"

        @Ticket.define_flow("priority")
        def priority_flow(flow):
            with flow.state("low"):
                flow.action("raise", to="high")

        assert isinstance(priority_flow, Flow)
        assert Ticket().priority_raise() == "high"

    def test_define_flow_on_plain_class(self):
        """The function form works for classes without the mixin."""

        class Lamp:
            def __init__(self):
                self.power = "off"

        def block(flow):
            with flow.state("off"):
                flow.action("switch", to="on")
            with flow.state("on"):
                flow.action("switch", to="off")

        define_flow(Lamp, "power", block)
        lamp = Lamp()

        assert lamp.power_switch() == "on"
        assert lamp.power_switch() == "off"
        assert lamp.power_is_off() is True
        assert issubclass(Lamp.InvalidTransition, Exception)

    def test_unknown_named_guard_fails_at_class_creation(self):
        """Named guards must exist on the class."""

        def block(flow):
            with flow.state("a"):
                flow.action("go", to="b", allow_if="missing_method")

        with pytest.raises(DeclarationError, match="undefined method 'missing_method'"):

            class Broken(Circulator, flows={"status": block}):
                pass

    def test_unknown_dependency_attribute_fails(self):
        """Dependency guards need a sibling flow declared first."""

        def block(flow):
            with flow.state("a"):
                flow.action("go", to="b", allow_if={"other": ["x"]})

        with pytest.raises(DeclarationError, match="undefined flow attribute 'other'"):

            class Lonely(Circulator, flows={"status": block}):
                pass

    def test_unknown_dependency_state_fails(self):
        """Dependency guards may only name states the sibling declares."""

        def block(flow):
            with flow.state("draft"):
                flow.action("go", to="live", allow_if={"review_status": ["rubber_stamped"]})

        with pytest.raises(DeclarationError, match="invalid states"):

            class Sloppy(Circulator, flows={"review_status": review_flow, "status": block}):
                def __init__(self):
                    self.status = "draft"

    def test_subclass_flows_do_not_leak_to_parent(self):
        """Adding a flow to a subclass leaves the parent alone."""

        class Featured(Article):
            def __init__(self):
                super().__init__()
                self.badge = "none"

        def badge_flow(flow):
            with flow.state("none"):
                flow.action("award", to="gold")

        Featured.define_flow("badge", badge_flow)

        assert set(Featured.flows()) == {"review_status", "status", "badge"}
        assert set(Article.flows()) == {"review_status", "status"}
        assert Featured().badge_award() == "gold"
        assert Featured().status_submit() == "submitted"


def test_late_extension_generates_members():
    """Registering an extension after the class exists adds new methods."""

    def block(flow):
        with flow.state("review"):
            flow.action("approve", to="approved")

    class Proposal(Circulator, flows={"status": block}):
        def __init__(self):
            self.status = "review"

    proposal = Proposal()
    assert not hasattr(proposal, "status_reject")

    @DEFAULT_EXTENSIONS.extension(Proposal, "status")
    def add_reject(flow):
        with flow.state("review"):
            flow.action("reject", to="rejected")

    assert proposal.status_reject() == "rejected"
    assert Proposal().status_is_rejected() is False
