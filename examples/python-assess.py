import json

from mastergate import QualityGate, AssessmentOptions


def main():
    print("--- Testing Signal Assessment (Python) ---")

    signals = {
        "subgenre": "trap",
        "subgenreConfidence": 0.7,
        "bpm": 140,
        "transientSharpness": 0.55,
        "transientDensity": 0.6,
        "subBassEnergy": 0.6,
        "dynamicRange": 7,
        "crestFactor": 9,
        "integratedLoudness": -14,
        "truePeak": -20,
        "hasClipping": False,
        "isSilent": False,
        "duration": 180,
    }

    gate = QualityGate(cache_size=16)
    options = AssessmentOptions(model_ids=["subgenre_v2", "loudness_analysis"])
    result = gate.assess(signals, confidence=0.9, options=options)

    print("\n[Assessment]")
    print(f"Status: {result.status.value}")
    print(f"Trust ML: {result.should_trust_ml}")
    print(f"Can proceed: {result.can_proceed}")
    print(f"Confidence: {result.confidence.original} -> {result.confidence.adjusted}")

    for layer in result.layers:
        print(f"  {layer.name}: passed={layer.passed} score={layer.score}")

    # Second call is served from the cache
    gate.assess(signals, confidence=0.9, options=options)
    print(f"\nCache: {gate.cache_info()}")

    print("\n[Job Check]")
    report = gate.check_job(
        None,
        {"eqBoostMax": 10, "limiterThreshold": -2.5},
        {"preserveDynamics": True},
        preset_id="master-streaming",
    )
    print(json.dumps(report.to_dict(), indent=2))


if __name__ == "__main__":
    main()
