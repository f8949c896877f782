class WeightConverter:
    """Utility for converting between kg and lb."""

    KG_TO_LB = 2.20462
    UNITS = ("kg", "lb")

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.KG_TO_LB, 2)

    @classmethod
    def convert(cls, value: float, from_unit: str, to_unit: str) -> float:
        """Convert ``value`` between the supported units."""
        if from_unit not in cls.UNITS or to_unit not in cls.UNITS:
            raise ValueError(f"unsupported weight unit: {from_unit} -> {to_unit}")
        if from_unit == to_unit:
            return value
        if from_unit == "kg":
            return cls.kg_to_lb(value)
        return cls.lb_to_kg(value)
