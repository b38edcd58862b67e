from objslots.core.registry import Matcher, SlotRegistry
from objslots.core.slot import closure_slot, function_slot, method_slot


def f1(*a):
    pass


def f2(*a):
    pass


class Owner:
    def m(self, *a):
        pass


def test_store_and_indexed_lookup_keep_order():
    reg = SlotRegistry()
    a, b = function_slot(f1), function_slot(f2)
    reg.store("sig", a)
    reg.store("sig", b)
    assert reg.at("sig", 0) is a
    assert reg.at("sig", 1) is b
    assert reg.at("sig", 2) is None
    assert reg.at("sig", -1) is None
    assert reg.at("other", 0) is None
    assert reg.count() == 2 and reg.count("sig") == 2


def test_matcher_modes():
    o = Owner()
    ms = method_slot(o, Owner.m)
    fs = function_slot(f1)
    assert Matcher(callback=id(f1))(fs)
    assert not Matcher(callback=id(f1))(ms)
    assert Matcher(owner=id(o))(ms)
    assert Matcher(owner=id(o), callback=id(Owner.m))(ms)
    assert not Matcher(owner=id(o), callback=id(f1))(ms)
    assert not Matcher()(ms)
    assert not Matcher()(fs)


def test_remove_scans_all_signals_and_collapses_empty_entries():
    reg = SlotRegistry()
    o = Owner()
    reg.store("a", function_slot(f1))
    reg.store("a", method_slot(o, Owner.m))
    reg.store("b", function_slot(f1))
    reg.store("b", function_slot(f1))
    assert reg.remove(Matcher(callback=id(f1))) == 3
    assert reg.signals() == ("a",)
    assert "b" not in reg
    assert reg.remove(Matcher(owner=id(o))) == 1
    assert len(reg) == 0
    # second pass is a no-op
    assert reg.remove(Matcher(owner=id(o))) == 0


def test_remove_with_empty_matcher_keeps_everything():
    reg = SlotRegistry()
    reg.store("a", function_slot(f1))
    assert reg.remove(Matcher()) == 0
    assert reg.count() == 1


def test_slots_snapshot_and_clear():
    reg = SlotRegistry()
    a, b = function_slot(f1), closure_slot(f2)
    reg.store("s", a)
    reg.store("s", b)
    assert reg.slots("s") == (a, b)
    assert reg.clear() == 2
    assert reg.count() == 0 and reg.signals() == ()
