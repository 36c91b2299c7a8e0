"""
Gate wiring shared by the sobriety check handlers.
"""
from shared.sobriety import SobrietyGate
from shared.stores import DynamoSobrietyStore
from shared.vision import BedrockVisionAnalyzer


def build_gate() -> SobrietyGate:
    return SobrietyGate(DynamoSobrietyStore(), BedrockVisionAnalyzer())
