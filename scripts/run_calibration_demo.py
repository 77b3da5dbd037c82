#!/usr/bin/env python3
"""
Caplet Volatility Calibration Demo

Walks through the calibration workflow on a synthetic USD market:
1. Build cap quotes from a known SABR smile
2. Bootstrap an expiry-strike caplet surface
3. Fit a penalized strike-independent curve to ATM quotes
4. Calibrate and bootstrap SABR term structures
5. Report vega-style parameter sensitivities of a cap
"""

import sys
import logging
from pathlib import Path
from datetime import date, datetime

import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from capvol import (
    DayCount,
    USD_LIBOR_3M,
    ValueType,
    SabrParameterType,
    CurveMetadata,
    ConstantCurve,
    create_flat_curve,
    RatesProvider,
    RawOptionData,
    SabrParameters,
    SabrParametersVolatilities,
    CapPricer,
    create_cap_floor,
    CalibrationSettings,
    DirectIborCapletFloorletFlatVolatilityDefinition,
    SabrIborCapletFloorletVolatilityCalibrationDefinition,
    SabrIborCapletFloorletVolatilityBootstrapDefinition,
    SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
    IborCapletFloorletVolatilityCalibrator,
)
from capvol.calibration.objective import ObjectiveBuilder


VALUATION_DATE = date(2024, 1, 15)
EXPIRIES = ["1Y", "2Y", "3Y", "5Y"]
STRIKES = [0.02, 0.025, 0.03, 0.035, 0.04]
DC = DayCount.ACT_365


def print_section(title: str):
    """Print section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def synthetic_market():
    """Rates at 3% and a SABR model to generate quotes from."""
    rates = RatesProvider(VALUATION_DATE, create_flat_curve(VALUATION_DATE, 0.03))

    def constant(parameter_type, value):
        metadata = CurveMetadata.sabr_parameter_by_expiry(f"Market-{parameter_type.value}", DC, parameter_type)
        return ConstantCurve.of(metadata, value)

    parameters = SabrParameters(
        constant(SabrParameterType.ALPHA, 0.05),
        constant(SabrParameterType.BETA, 0.5),
        constant(SabrParameterType.RHO, -0.25),
        constant(SabrParameterType.NU, 0.45),
        day_count=DC,
    )
    vols = SabrParametersVolatilities("Market", USD_LIBOR_3M, datetime(2024, 1, 15), parameters)
    return rates, vols


def cap_quotes(rates, vols, strikes, data_type=ValueType.BLACK_VOLATILITY) -> RawOptionData:
    """Flat cap volatilities repricing each cap under the model."""
    pricer = CapPricer()
    template = RawOptionData.of(EXPIRIES, strikes, data_type, np.ones((len(EXPIRIES), max(1, len(strikes)))))
    builder = ObjectiveBuilder(USD_LIBOR_3M, datetime(2024, 1, 15), rates, DC, pricer)
    data = np.zeros(template.values.shape)
    for i, tenor in enumerate(EXPIRIES):
        cap = create_cap_floor(USD_LIBOR_3M, VALUATION_DATE, tenor, 0.0)
        row_strikes = strikes if strikes else [pricer.par_rate(cap, rates)]
        for j, strike in enumerate(row_strikes):
            priced = cap.with_strike(strike)
            data[i, j] = pricer.implied_volatility(
                priced, rates, lambda v: builder.market_volatilities(template, v),
                pricer.price(priced, rates, vols)
            )
    return RawOptionData.of(EXPIRIES, strikes, data_type, data)


def print_fit(result):
    """Print the per-quote fit report."""
    table = result.diagnostics_table()
    print(f"{'Expiry':>8} {'Strike':>8} {'Type':>6} {'Quote':>10} {'Model':>10} {'Error':>10}")
    print("-" * 58)
    for _, row in table.iterrows():
        kind = "cap" if row['is_cap'] else "floor"
        print(f"{row['expiry']:>8} {row['strike']*100:>7.2f}% {kind:>6} "
              f"{row['quote']*100:>9.3f}% {row['model_quote']*100:>9.3f}% {row['error']*10000:>+8.3f}bp")
    print(f"\n  Residual norm = {result.residual_norm:.3e}, evaluations = {result.iterations}")


def demo_quotes(rates, market):
    """Show the synthetic quote grid."""
    print_section("1. Cap Quotes")
    raw = cap_quotes(rates, market, STRIKES)
    print(raw.to_dataframe().to_string(index=False))
    return raw


def demo_surface_bootstrap(calibrator, rates, raw):
    """Bootstrap caplet volatilities quote by quote."""
    print_section("2. Surface Bootstrap")
    definition = SurfaceIborCapletFloorletVolatilityBootstrapDefinition.of("USD-Surface", USD_LIBOR_3M, DC)
    result = calibrator.calibrate(definition, VALUATION_DATE, raw, rates)
    print_fit(result)
    return result


def demo_flat_curve(calibrator, rates, market):
    """Penalized fit of a term structure to ATM quotes."""
    print_section("3. ATM Term Structure")
    raw = cap_quotes(rates, market, [])
    definition = DirectIborCapletFloorletFlatVolatilityDefinition.of(
        "USD-ATM", USD_LIBOR_3M, DC, 0.07, "time_square"
    )
    result = calibrator.calibrate(definition, VALUATION_DATE, raw, rates)
    print_fit(result)

    curve = result.volatilities.curve
    print(f"\n  Caplet curve: {curve.parameter_count} nodes")
    for t, v in list(zip(curve.x_values, curve.y_values))[::4]:
        print(f"    t = {t:5.2f}  vol = {v*100:6.2f}%")
    return result


def demo_sabr(calibrator, rates, raw):
    """Joint SABR fit and SABR bootstrap on the same quotes."""
    print_section("4. SABR Term Structures")

    definition = SabrIborCapletFloorletVolatilityCalibrationDefinition.of_fixed_beta(
        "USD-SABR", USD_LIBOR_3M, DC, 0.5, [1.0, 4.0], [1.0, 4.0], [1.0, 4.0]
    )
    result = calibrator.calibrate(definition, VALUATION_DATE, raw, rates)
    print("--- Joint calibration ---")
    print_fit(result)

    bootstrap = SabrIborCapletFloorletVolatilityBootstrapDefinition.of_fixed_beta(
        "USD-SABR-Boot", USD_LIBOR_3M, DC, 0.5
    )
    booted = calibrator.calibrate(bootstrap, VALUATION_DATE, raw, rates)
    print("\n--- Bootstrap ---")
    vols = booted.volatilities
    print(f"{'Expiry':>8} {'Alpha':>10} {'Rho':>10} {'Nu':>10}")
    for t in vols.parameters.curve(SabrParameterType.ALPHA).x_values:
        print(f"{t:>8.2f} {vols.alpha(t):>10.5f} {vols.rho(t):>10.4f} {vols.nu(t):>10.4f}")
    return result


def demo_sensitivities(rates, result):
    """Sensitivity of a 3Y cap to the calibrated SABR knots."""
    print_section("5. Parameter Sensitivities")
    pricer = CapPricer()
    cap = create_cap_floor(USD_LIBOR_3M, VALUATION_DATE, "3Y", 0.03, notional=10_000_000)
    vols = result.volatilities

    price = pricer.price(cap, rates, vols)
    points = pricer.price_sensitivity(cap, rates, vols)
    sensitivities = vols.parameter_sensitivity(points)

    print(f"  3Y cap at 3.00%, notional $10,000,000")
    print(f"  Price = ${price:,.2f}\n")
    print(sensitivities.to_dataframe().to_string(index=False))


def main():
    """Run all demos."""
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    print("\n" + "="*60)
    print(" Caplet Volatility Calibration Demo")
    print("="*60)

    rates, market = synthetic_market()
    calibrator = IborCapletFloorletVolatilityCalibrator(CalibrationSettings.fast())

    raw = demo_quotes(rates, market)
    demo_surface_bootstrap(calibrator, rates, raw)
    demo_flat_curve(calibrator, rates, market)
    sabr = demo_sabr(calibrator, rates, raw)
    demo_sensitivities(rates, sabr)

    print("\n" + "="*60)
    print(" Demo Complete!")
    print("="*60 + "\n")


if __name__ == "__main__":
    main()
