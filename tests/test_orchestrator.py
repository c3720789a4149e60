"""Tests for target lookup, path selection, fan-out and watched builds."""
import asyncio
import json
import os
import re

import pytest

from jspipe.auxiliary import AuxiliaryBundles
from jspipe.config.flags import BuildFlags
from jspipe.core.orchestrator import Orchestrator
from jspipe.core.state import PipelineState
from jspipe.core.watch import WatchSubsystem
from jspipe.exceptions import BundleFailed, DependencyDiscoveryFailed, TargetNotFound
from jspipe.targets import BuildTarget, TargetOptions, TargetRegistry

WRAPPER = "(function(){<%= contents %>})();"


def _orchestrator(registry, flags, engine, compressor, watcher_factory, legacy=None,
                  aux=None, root=None, state=None):
    watch = WatchSubsystem(engine, flags, debounce_delay=0.02, watcher_factory=watcher_factory)
    return Orchestrator(registry, flags, engine, compressor, legacy_compiler=legacy,
                        state=state or PipelineState(),
                        auxiliary=AuxiliaryBundles(aux or {}, root=root), watch=watch)


def test_unknown_target(workspace, flags, engine, compressor, watcher_factory):
    _, registry = workspace
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    with pytest.raises(TargetNotFound) as info:
        asyncio.run(orch.do_build_js("nope.js", {}))
    assert str(info.value) == "Could not find target nope.js"
    assert not engine.requests


def test_destination_follows_minify(workspace, flags, engine, compressor, watcher_factory):
    root, registry = workspace
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)

    async def go():
        await orch.do_build_js("alpha.js", {})
        await orch.do_build_js("alpha.js", {"minify": True})

    asyncio.run(go())
    assert (root / "dist" / "alpha.js").exists()
    assert (root / "dist-min" / "alpha.min.js").exists()
    assert engine.requests[0].outfile == str(root / "dist" / "alpha.js")


def test_target_level_minify_keeps_plain_destination(tmp_path, flags, engine, compressor,
                                                     watcher_factory):
    src = tmp_path / "src"
    src.mkdir()
    (src / "lib.js").write_text("lib();\n")
    registry = TargetRegistry({"lib.js": BuildTarget(
        name="lib.js", src_dir=str(src), src_filename="lib.js",
        dest_dir=str(tmp_path / "dist"), minified_dest_dir=str(tmp_path / "min"),
        options=TargetOptions(minify=True, minified_name="lib.min.js"),
    )})
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    asyncio.run(orch.do_build_js("lib.js", {}))
    assert (tmp_path / "dist" / "lib.min.js").exists()
    assert not (tmp_path / "min").exists()


def test_call_options_override_target_options(workspace, flags, engine, compressor, watcher_factory):
    root, registry = workspace
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    asyncio.run(orch.do_build_js("alpha.js", {"to_name": "renamed.js"}))
    assert (root / "dist" / "renamed.js").exists()
    assert registry["alpha.js"].options.to_name is None


def test_minified_fan_out(workspace, flags, engine, compressor, watcher_factory):
    root, registry = workspace
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    failures = asyncio.run(orch.build_many(["alpha.js", "beta.js", "gamma.js"], {"minify": True}))
    assert failures == []

    for name in ("alpha", "beta", "gamma"):
        code_file = root / "dist-min" / f"{name}.min.js"
        smap = json.loads((root / "dist-min" / f"{name}.min.js.map").read_text())
        assert code_file.exists()
        assert smap["file"] == code_file.name
        assert smap["sources"] == [f"src/{name}.js"]

    # The shared private property is mangled to the same name in both bundles.
    beta = (root / "dist-min" / "beta.min.js").read_text()
    gamma = (root / "dist-min" / "gamma.min.js").read_text()
    beta_name = re.search(r"var (\w+) = 2", beta).group(1)
    gamma_name = re.search(r"var (\w+) = 3", gamma).group(1)
    assert beta_name == gamma_name
    assert "_PRIVATE_" not in beta + gamma
    assert all(vars_ == {} for vars_ in compressor.incoming_vars)


def test_fan_out_agrees_on_new_property_names(tmp_path, flags, engine, compressor, watcher_factory):
    src = tmp_path / "src"
    src.mkdir()
    sources = {
        "one.js": "x.first_PRIVATE_ = 1;\nx.common_PRIVATE_ = 10;\n",
        "two.js": "x.second_PRIVATE_ = 2;\nx.common_PRIVATE_ = 20;\n",
        "three.js": "x.common_PRIVATE_ = 30;\n",
    }
    for name, source in sources.items():
        (src / name).write_text(source)
    registry = TargetRegistry({
        name: BuildTarget(name=name, src_dir=str(src), src_filename=name,
                          dest_dir=str(tmp_path / "dist"), minified_dest_dir=str(tmp_path / "min"),
                          options=TargetOptions(minified_name=name.replace(".js", ".min.js")))
        for name in sources
    })
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    assert asyncio.run(orch.build_many(list(sources), {"minify": True})) == []

    def renamed(name, value):
        code = (tmp_path / "min" / name).read_text()
        return re.search(rf"x\.(\w+) = {value};", code).group(1)

    common = {renamed("one.min.js", 10), renamed("two.min.js", 20), renamed("three.min.js", 30)}
    first, second = renamed("one.min.js", 1), renamed("two.min.js", 2)
    assert len(common) == 1
    assert len({first, second, *common}) == 3
    assert orch.state.name_cache.props["$common_PRIVATE_"] in common


def test_fail_fast_propagates(workspace, flags, engine, compressor, watcher_factory):
    _, registry = workspace
    engine.fail = "syntax error"
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    with pytest.raises(BundleFailed):
        asyncio.run(orch.build_many(["alpha.js", "beta.js"]))


def test_collecting_failures(workspace, flags, engine, compressor, watcher_factory):
    _, registry = workspace
    engine.fail = "syntax error"
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    failures = asyncio.run(orch.build_many(["alpha.js", "beta.js", "nope.js"], fail_fast=False))
    assert len(failures) == 3
    assert sorted(type(f).__name__ for f in failures) == ["BundleFailed", "BundleFailed", "TargetNotFound"]


def test_compile_all_builds_core_runtime_last(workspace, flags, engine, compressor, watcher_factory):
    _, registry = workspace
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    asyncio.run(orch.compile_all_js({}))
    built = [os.path.basename(r.entry_point) for r in engine.requests]
    assert sorted(built) == ["alpha.js", "beta.js", "gamma.js", "runtime.js"]
    assert built[-1] == "runtime.js"


def test_compile_all_skips_polyfills_when_minifying(tmp_path, flags, engine, compressor, watcher_factory):
    src = tmp_path / "src"
    src.mkdir()
    for name in ("polyfills.js", "main.js"):
        (src / name).write_text("f();\n")
    registry = TargetRegistry({
        name: BuildTarget(name=name, src_dir=str(src), src_filename=name,
                          dest_dir=str(tmp_path / "dist"), minified_dest_dir=str(tmp_path / "min"),
                          options=TargetOptions(minified_name=name.replace(".js", ".min.js"),
                                                skip_when_minified=name == "polyfills.js"))
        for name in ("polyfills.js", "main.js")
    })
    orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
    asyncio.run(orch.compile_all_js({"minify": True}))
    assert [os.path.basename(r.entry_point) for r in engine.requests] == ["main.js"]


class TestLegacyPath:
    def _registry(self, tmp_path):
        src = tmp_path / "src"
        src.mkdir()
        (src / "amp-x.js").write_text("run();\n")
        return TargetRegistry({"amp-x.js": BuildTarget(
            name="amp-x.js", src_dir=str(src), src_filename="amp-x.js",
            dest_dir=str(tmp_path / "dist"), minified_dest_dir=str(tmp_path / "min"),
            options=TargetOptions(minified_name="amp-x.min.js", alias_name="amp-x-latest.js",
                                  wrapper=WRAPPER),
        )})

    def test_minified_build_uses_legacy_compiler(self, tmp_path, engine, compressor,
                                                 legacy_compiler, watcher_factory):
        (tmp_path / "third_party").mkdir()
        (tmp_path / "third_party" / "lib.js").write_text("LIB()")
        flags = BuildFlags()
        orch = _orchestrator(self._registry(tmp_path), flags, engine, compressor, watcher_factory,
                             legacy=legacy_compiler, aux={"amp-x.js": ["third_party/lib.js"]},
                             root=tmp_path)
        asyncio.run(orch.do_build_js("amp-x.js", {"minify": True}))

        assert not engine.requests
        assert legacy_compiler.calls[0][2] == "amp-x.min.js"
        code = (tmp_path / "min" / "amp-x.min.js").read_text()
        assert code == "(function(){\nLIB();\nrun();})();"
        assert (tmp_path / "min" / "amp-x-latest.js").read_text() == code
        smap = json.loads((tmp_path / "min" / "amp-x.min.js.map").read_text())
        assert smap["sourceRoot"] == "/"
        assert sorted(smap["sources"]) == ["amp-x.js", "third_party/lib.js"]

    def test_unminified_build_stays_on_bundler(self, tmp_path, engine, compressor,
                                               legacy_compiler, watcher_factory):
        orch = _orchestrator(self._registry(tmp_path), BuildFlags(), engine, compressor,
                             watcher_factory, legacy=legacy_compiler)
        asyncio.run(orch.do_build_js("amp-x.js", {}))
        assert len(engine.requests) == 1
        assert not legacy_compiler.calls

    def test_legacy_failure(self, tmp_path, engine, compressor, legacy_compiler, watcher_factory):
        legacy_compiler.fail = "JSC_UNDEFINED_VARIABLE"
        orch = _orchestrator(self._registry(tmp_path), BuildFlags(), engine, compressor,
                             watcher_factory, legacy=legacy_compiler)
        with pytest.raises(BundleFailed):
            asyncio.run(orch.do_build_js("amp-x.js", {"minify": True}))

    def test_missing_auxiliary_file_fails_the_build(self, tmp_path, engine, compressor,
                                                    legacy_compiler, watcher_factory):
        orch = _orchestrator(self._registry(tmp_path), BuildFlags(), engine, compressor,
                             watcher_factory, legacy=legacy_compiler,
                             aux={"amp-x.js": ["third_party/missing.js"]}, root=tmp_path)
        with pytest.raises(BundleFailed) as info:
            asyncio.run(orch.do_build_js("amp-x.js", {"minify": True}))
        assert info.value.dest_filename == "amp-x.min.js"
        assert isinstance(info.value.__cause__, FileNotFoundError)

    def test_missing_auxiliary_file_continues_when_asked(self, tmp_path, engine, compressor,
                                                         legacy_compiler, watcher_factory):
        orch = _orchestrator(self._registry(tmp_path), BuildFlags(), engine, compressor,
                             watcher_factory, legacy=legacy_compiler,
                             aux={"amp-x.js": ["third_party/missing.js"]}, root=tmp_path)
        asyncio.run(orch.do_build_js("amp-x.js", {"minify": True, "continue_on_error": True}))
        assert not (tmp_path / "min" / "amp-x-latest.js").exists()


class TestWatchedBuilds:
    def test_second_watched_request_is_noop(self, workspace, flags, engine, compressor, watcher_factory):
        _, registry = workspace
        orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)

        async def go():
            await orch.do_build_js("alpha.js", {"watch": True})
            await orch.do_build_js("alpha.js", {"watch": True})
            await orch.do_build_js("alpha.js", {})

        asyncio.run(go())
        assert len(watcher_factory.watchers) == 1
        assert len(engine.metafile_calls) == 1
        assert len(engine.requests) == 1
        assert registry["alpha.js"].entry_point in orch.state.watched_entries

    def test_concurrent_watched_requests_register_once(self, workspace, flags, engine, compressor,
                                                       watcher_factory):
        _, registry = workspace
        orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)

        async def go():
            await asyncio.gather(*(orch.do_build_js("alpha.js", {"watch": True}) for _ in range(3)))

        asyncio.run(go())
        assert len(watcher_factory.watchers) == 1
        assert len(engine.requests) == 1

    def test_burst_triggers_one_rebuild(self, workspace, flags, engine, compressor, watcher_factory):
        root, registry = workspace
        builds = []
        orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)

        async def go():
            await orch.do_build_js("alpha.js", {"watch": True, "on_watch_build": builds.append})
            (root / "src" / "alpha.js").write_text("console.log('edited');\n")
            watcher = watcher_factory.watchers[0]
            for _ in range(5):
                watcher.fire()
            await asyncio.sleep(0.2)
            orch.close()

        asyncio.run(go())
        entry = registry["alpha.js"].entry_point
        assert engine.rebuilds == [entry]
        assert len(engine.requests) == 1
        assert len(builds) == 2
        assert all(b.done() for b in builds)
        assert "edited" in (root / "dist" / "alpha.js").read_text()
        assert watcher_factory.watchers[0].stopped

    def test_failed_rebuild_keeps_watching(self, workspace, flags, engine, compressor, watcher_factory):
        root, registry = workspace
        orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)

        async def go():
            await orch.do_build_js("alpha.js", {"watch": True})
            engine.fail = "broken"
            watcher_factory.watchers[0].fire()
            await asyncio.sleep(0.1)
            engine.fail = None
            watcher_factory.watchers[0].fire()
            await asyncio.sleep(0.1)

        asyncio.run(go())
        # The failed attempt reached the engine too.
        assert len(engine.rebuilds) == 2
        assert (root / "dist" / "alpha.js").exists()
        assert orch.watch.debouncer(registry["alpha.js"].entry_point).runs == 2

    def test_dependency_failure_unregisters_entry(self, workspace, flags, engine, compressor,
                                                  watcher_factory):
        _, registry = workspace
        engine.deps_error = "Could not resolve"
        orch = _orchestrator(registry, flags, engine, compressor, watcher_factory)
        with pytest.raises(DependencyDiscoveryFailed):
            asyncio.run(orch.do_build_js("alpha.js", {"watch": True}))
        entry = registry["alpha.js"].entry_point
        assert entry not in orch.state.watched_entries
        assert not watcher_factory.watchers
        assert not engine.requests

        engine.deps_error = None
        asyncio.run(orch.do_build_js("alpha.js", {"watch": True}))
        assert len(watcher_factory.watchers) == 1
