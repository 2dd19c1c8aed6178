"""Shared fixtures for the hightide tests."""

import os
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from hightide.config.settings import Settings


VALID_XML = """<?xml version="1.0"?>
<configuration>
  <srcPath name="/a">
    <property><name>replication</name><value>3</value></property>
    <property><name>modTimePeriod</name><value>3600000</value></property>
    <destPath name="/b">
      <property><name>replication</name><value>2</value></property>
    </destPath>
  </srcPath>
</configuration>
"""

TWO_POLICY_XML = """<configuration>
  <srcPath name="/a">
    <property><name>replication</name><value>3</value></property>
    <property><name>modTimePeriod</name><value>3600000</value></property>
    <destPath name="/b">
      <property><name>replication</name><value>2</value></property>
    </destPath>
  </srcPath>
  <srcPath name="/c">
    <property><name>replication</name><value>1</value></property>
    <property><name>modTimePeriod</name><value>60000</value></property>
    <destPath name="/d">
      <property><name>replication</name><value>1</value></property>
    </destPath>
  </srcPath>
</configuration>
"""

# Fake clock start; policy files are backdated relative to it.
T0 = 1_000_000.0


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def write_policy_file(path, text: str, mtime: float = None):
    """Write a policy file and optionally pin its modification time."""
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return str(path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy_file(tmp_path):
    return write_policy_file(tmp_path / "policies.xml", VALID_XML, mtime=T0 - 100)


@pytest.fixture
def settings(policy_file):
    return Settings(config_file=policy_file, reload_enabled=True, reload_interval=10.0)
