"""
Dynamic Ride-Sharing Simulator - Dashboard
==========================================

Dashboard for running ride-sharing simulations and comparing matching strategies.

Features:
- Control panel for passengers, vehicles, max detour and time window
- KPI cards (passengers matched, average detour, distance saved)
- Pydeck map with pickups coloured by cluster, vehicles and routes
- Assignment and strategy comparison tables
"""

import streamlit as st
import pandas as pd
import pydeck as pdk
from datetime import datetime
from typing import Dict, Any, List, Optional

from rideshare import config
from rideshare.models import SimulationParams, SimulationResult
from rideshare.simulation import create_service

# =============================================================================
# PAGE CONFIG
# =============================================================================

st.set_page_config(
    page_title="Ride-Sharing Simulator",
    page_icon="🚕",
    layout="wide",
    initial_sidebar_state="expanded"
)

# =============================================================================
# CUSTOM STYLING
# =============================================================================

st.markdown("""
<style>
    .main .block-container {
        padding-top: 2rem;
        padding-bottom: 2rem;
    }

    /* KPI Cards */
    .kpi-card {
        background: linear-gradient(135deg, #4f46e5 0%, #7c3aed 100%);
        border-radius: 16px;
        padding: 1.5rem;
        color: white;
        text-align: center;
        box-shadow: 0 10px 40px rgba(79, 70, 229, 0.3);
    }

    .kpi-card.green {
        background: linear-gradient(135deg, #059669 0%, #34d399 100%);
        box-shadow: 0 10px 40px rgba(5, 150, 105, 0.3);
    }

    .kpi-card.orange {
        background: linear-gradient(135deg, #ea580c 0%, #fb923c 100%);
        box-shadow: 0 10px 40px rgba(234, 88, 12, 0.3);
    }

    .kpi-value {
        font-size: 2.5rem;
        font-weight: 800;
        margin: 0.5rem 0;
    }

    .kpi-label {
        font-size: 0.9rem;
        opacity: 0.9;
        text-transform: uppercase;
        letter-spacing: 1px;
    }

    .kpi-delta {
        font-size: 1rem;
        font-weight: 600;
        padding: 0.25rem 0.75rem;
        border-radius: 20px;
        background: rgba(255,255,255,0.2);
        display: inline-block;
        margin-top: 0.5rem;
    }

    .section-header {
        font-size: 1.5rem;
        font-weight: 700;
        color: #1a1a2e;
        margin: 2rem 0 1rem 0;
        padding-bottom: 0.5rem;
        border-bottom: 3px solid #4f46e5;
    }

    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}
</style>
""", unsafe_allow_html=True)

# Cluster colours, cycled when there are more clusters than colours
CLUSTER_COLORS: List[List[int]] = [
    [230, 25, 75], [60, 180, 75], [255, 225, 25], [0, 130, 200], [245, 130, 48],
    [145, 30, 180], [70, 240, 240], [240, 50, 230], [210, 245, 60], [250, 190, 212],
    [0, 128, 128], [220, 190, 255], [170, 110, 40], [128, 0, 0], [0, 0, 128],
]
UNCLUSTERED_COLOR = [148, 163, 184]
VEHICLE_COLOR = [15, 23, 42]


# =============================================================================
# SIMULATION
# =============================================================================

def run_simulation(params: SimulationParams, clustering: str, matching: str,
                   seed: int, now: datetime) -> SimulationResult:
    """Run a simulation with the given strategy combination."""
    service = create_service(clustering=clustering, matching=matching, seed=seed, now=now)
    return service.run(params)


# =============================================================================
# MAP VISUALIZATION
# =============================================================================

def pickup_layer(result: SimulationResult, color_by_cluster: bool) -> pdk.Layer:
    cluster_of: Dict[str, int] = {}
    for idx, cluster in enumerate(result.clusters):
        for request_id in cluster.request_ids:
            cluster_of[request_id] = idx

    data = []
    for r in result.requests:
        idx = cluster_of.get(r.id)
        if color_by_cluster and idx is not None:
            color = CLUSTER_COLORS[idx % len(CLUSTER_COLORS)]
            label = f"{r.id} pickup ({result.clusters[idx].id})"
        else:
            color = UNCLUSTERED_COLOR
            label = f"{r.id} pickup"
        data.append({
            "position": [r.pickup_location.lng, r.pickup_location.lat],
            "color": color,
            "label": label,
        })

    return pdk.Layer(
        "ScatterplotLayer",
        data,
        get_position="position",
        get_fill_color="color",
        get_radius=80,
        opacity=0.8,
        pickable=True,
    )


def vehicle_layer(result: SimulationResult) -> pdk.Layer:
    used = {a.vehicle_id for a in result.assignments}
    data = [
        {
            "position": [v.location.lng, v.location.lat],
            "color": VEHICLE_COLOR if v.id in used else UNCLUSTERED_COLOR,
            "label": f"{v.id} ({v.capacity} seats{', assigned' if v.id in used else ''})",
        }
        for v in result.vehicles
    ]
    return pdk.Layer(
        "ScatterplotLayer",
        data,
        get_position="position",
        get_fill_color="color",
        get_radius=120,
        pickable=True,
        stroked=True,
        filled=True,
        line_width_min_pixels=1,
    )


def route_layer(result: SimulationResult) -> pdk.Layer:
    data = [
        {
            "path": [[p.lng, p.lat] for p in a.route],
            "color": CLUSTER_COLORS[i % len(CLUSTER_COLORS)],
            "label": f"{a.vehicle_id}: {', '.join(a.request_ids)}",
        }
        for i, a in enumerate(result.assignments)
    ]
    return pdk.Layer(
        "PathLayer",
        data,
        get_path="path",
        get_color="color",
        width_min_pixels=3,
        pickable=True,
    )


def render_map(result: SimulationResult, show_clusters: bool, show_routes: bool) -> None:
    layers = [pickup_layer(result, show_clusters)]
    if show_routes and result.assignments:
        layers.append(route_layer(result))
    layers.append(vehicle_layer(result))

    center_lat, center_lng = config.MAP_CENTER
    view_state = pdk.ViewState(latitude=center_lat, longitude=center_lng, zoom=config.DEFAULT_ZOOM)
    st.pydeck_chart(pdk.Deck(layers=layers, initial_view_state=view_state, tooltip={"text": "{label}"}))


# =============================================================================
# SIDEBAR
# =============================================================================

def render_sidebar() -> Optional[Dict[str, Any]]:
    """Render the sidebar control panel."""
    st.sidebar.markdown("## 🎛️ Simulation Controls")
    st.sidebar.markdown("---")

    passengers = st.sidebar.slider(
        "Number of Passengers",
        min_value=config.MIN_PASSENGERS,
        max_value=config.MAX_PASSENGERS,
        value=config.DEFAULT_PASSENGERS,
        help="Ride requests generated in the last hour"
    )

    vehicles = st.sidebar.slider(
        "Number of Vehicles",
        min_value=config.MIN_VEHICLES,
        max_value=config.MAX_VEHICLES,
        value=config.DEFAULT_VEHICLES,
        help="Vehicles placed near waiting passengers"
    )

    max_detour = st.sidebar.slider(
        "Max Detour (km)",
        min_value=0.5,
        max_value=5.0,
        value=float(config.DEFAULT_MAX_DETOUR_KM),
        step=0.5,
        help="Furthest a vehicle may be from a group of passengers"
    )

    time_window = st.sidebar.slider(
        "Time Window (minutes)",
        min_value=5,
        max_value=60,
        value=int(config.DEFAULT_TIME_WINDOW_MINUTES),
        step=5,
        help="Only requests this recent are grouped"
    )

    seed = st.sidebar.number_input("Random Seed", min_value=0, value=42, step=1)

    st.sidebar.markdown("---")
    st.sidebar.markdown("### 🗺️ Display")
    show_clusters = st.sidebar.checkbox("Show clusters", value=True)
    show_routes = st.sidebar.checkbox("Show routes", value=True)
    compare = st.sidebar.checkbox("Compare with baseline (K-Means + Greedy)", value=True)

    st.sidebar.markdown("---")
    if st.sidebar.button("🚀 Run Simulation", use_container_width=True):
        st.session_state["settings"] = {
            "params": SimulationParams(
                passenger_count=passengers,
                vehicle_count=vehicles,
                max_detour_distance_km=max_detour,
                time_window_minutes=float(time_window),
            ),
            "seed": int(seed),
            "compare": compare,
            "now": datetime.now(),
        }
        st.session_state.pop("simulation_results", None)

    if "settings" not in st.session_state:
        return None

    settings = dict(st.session_state["settings"])
    settings["show_clusters"] = show_clusters
    settings["show_routes"] = show_routes
    return settings


# =============================================================================
# KPI DISPLAY
# =============================================================================

def render_kpi_row(result: SimulationResult) -> None:
    """Render the top KPI cards."""
    metrics = result.metrics
    matched = len(result.requests) - len(result.unassigned_requests)

    col1, col2, col3 = st.columns(3)

    with col1:
        st.markdown(f"""
        <div class="kpi-card">
            <div class="kpi-label">Passengers Matched</div>
            <div class="kpi-value">{metrics.percentage_matched:.1f}%</div>
            <div class="kpi-delta">{matched}/{len(result.requests)} passengers</div>
        </div>
        """, unsafe_allow_html=True)

    with col2:
        st.markdown(f"""
        <div class="kpi-card orange">
            <div class="kpi-label">Avg Detour / Passenger</div>
            <div class="kpi-value">{metrics.average_detour_distance:.2f} km</div>
            <div class="kpi-delta">vs riding one at a time</div>
        </div>
        """, unsafe_allow_html=True)

    with col3:
        st.markdown(f"""
        <div class="kpi-card green">
            <div class="kpi-label">Distance Saved</div>
            <div class="kpi-value">{metrics.total_distance_saved:.2f} km</div>
            <div class="kpi-delta">{len(result.assignments)}/{len(result.vehicles)} vehicles used</div>
        </div>
        """, unsafe_allow_html=True)


# =============================================================================
# TABLES
# =============================================================================

def assignments_frame(result: SimulationResult) -> pd.DataFrame:
    rows = [
        {
            "Vehicle": a.vehicle_id,
            "Passengers": len(a.request_ids),
            "Requests": ", ".join(a.request_ids),
            "Waypoints": len(a.route),
        }
        for a in result.assignments
    ]
    return pd.DataFrame(rows, columns=["Vehicle", "Passengers", "Requests", "Waypoints"])


def comparison_frame(all_results: Dict[str, SimulationResult]) -> pd.DataFrame:
    rows = [{"Strategy": label, **result.to_dict()} for label, result in all_results.items()]
    return pd.DataFrame(rows).set_index("Strategy").T.reset_index().rename(columns={"index": "Metric"})


def render_tables(all_results: Dict[str, SimulationResult], primary: str) -> None:
    st.markdown('<div class="section-header">🚗 Assignments</div>', unsafe_allow_html=True)
    frame = assignments_frame(all_results[primary])
    if frame.empty:
        st.info("No passengers could be matched to a vehicle.")
    else:
        st.dataframe(frame, use_container_width=True, hide_index=True)

    if len(all_results) > 1:
        st.markdown('<div class="section-header">📊 Strategy Comparison</div>', unsafe_allow_html=True)
        st.dataframe(comparison_frame(all_results), use_container_width=True, hide_index=True)


# =============================================================================
# EXPLAINER SECTION
# =============================================================================

def render_explainer() -> None:
    """Render the strategy explainer section."""
    with st.expander("How the Strategies Work", expanded=False):
        col1, col2 = st.columns(2)

        with col1:
            st.markdown("""
            ### DBSCAN Clustering
            Groups requests whose pickups are close in space **and** time.
            The neighbourhood radius grows with demand. Isolated requests
            become single-passenger groups.

            ### K-Means (baseline)
            Splits requests into groups of about three by pickup location.
            """)

        with col2:
            st.markdown("""
            ### Genetic Matching
            Evolves complete group-to-vehicle assignments, rewarding matched
            passengers and penalizing detours and idle vehicles. Idle vehicles
            then pick up leftover groups under relaxed detour limits.

            ### Greedy (baseline)
            Largest group first, each to the nearest vehicle with seats.
            """)


# =============================================================================
# MAIN APPLICATION
# =============================================================================

def main():
    """Main application entry point."""
    st.markdown("""
    <div style="text-align: center; padding: 1rem 0 2rem 0;">
        <h1 style="font-size: 3rem; font-weight: 800; margin-bottom: 0.5rem;">
            Dynamic Ride-Sharing Simulator
        </h1>
        <p style="font-size: 1.2rem; color: #666; max-width: 700px; margin: 0 auto;">
            Spatio-temporal clustering and genetic vehicle matching
        </p>
    </div>
    """, unsafe_allow_html=True)

    settings = render_sidebar()

    if settings is None:
        st.markdown("---")
        st.info("👈 Set the parameters in the sidebar, then click **Run Simulation**.")
        render_explainer()
        return

    primary = "dbscan+genetic"
    strategies = [("dbscan", "genetic")]
    if settings["compare"]:
        strategies.append(("kmeans", "greedy"))

    if "simulation_results" in st.session_state:
        all_results = st.session_state["simulation_results"]
    else:
        all_results: Dict[str, SimulationResult] = {}
        with st.spinner("Running simulations..."):
            for clustering, matching in strategies:
                all_results[f"{clustering}+{matching}"] = run_simulation(
                    settings["params"], clustering, matching, settings["seed"], settings["now"]
                )
        st.session_state["simulation_results"] = all_results

    result = all_results[primary]
    render_kpi_row(result)

    st.markdown('<div class="section-header">🗺️ Map</div>', unsafe_allow_html=True)
    render_map(result, settings["show_clusters"], settings["show_routes"])

    render_tables(all_results, primary)

    st.markdown("<br>", unsafe_allow_html=True)
    render_explainer()


if __name__ == "__main__":
    main()
