from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter()

_STYLE = """
 body{font-family: system-ui, Segoe UI, Arial; margin:18px}
 fieldset{border:1px solid #ddd; padding:12px; border-radius:10px; margin-bottom:14px}
 label{display:inline-block; min-width:140px}
 input[type=number]{width:120px}
 .row{margin:6px 0}
 .ok{color:#0a7a0a}
 .err{color:#b30000}
 .pill{display:inline-block; padding:2px 8px; border-radius:999px; background:#eee; margin-left:8px}
 button{padding:6px 10px; border-radius:8px; border:1px solid #ccc; background:#f7f7f7; cursor:pointer}
 button:hover{background:#efefef}
 .muted{color:#666; font-size:12px}
 table{border-collapse:collapse} td,th{padding:4px 10px; border-bottom:1px solid #eee; text-align:left}
 pre{background:#111; color:#ddd; padding:10px; border-radius:8px; overflow:auto; max-height:220px}
"""


@router.get("/", response_class=HTMLResponse)
def pos_home():
    return """<!doctype html>
<html lang='en'>
<head>
<meta charset='utf-8'/>
<meta name='viewport' content='width=device-width,initial-scale=1'/>
<title>POS Terminal</title>
<style>""" + _STYLE + """</style>
</head>
<body>
  <h1>Point of Sale</h1>

  <fieldset id="fs_session">
    <legend>Session</legend>
    <div class="row"><label>Opening balance</label><input id="opening" type="number" value="500"/>
      <button onclick="openSession()">Start New Session</button></div>
    <div class="row"><label>Closing balance</label><input id="closing" type="number" value="0"/>
      <button onclick="closeSession()">Close Session</button></div>
    <div class="row">
      <span id="session_badge" class="pill">no session</span>
      <span id="balance_badge" class="pill">cash: -</span>
    </div>
    <div class="row">
      <label>Display hash</label><code id="hash">-</code>
      <button onclick="copyHash()">Copy</button><span id="copied" class="muted"></span>
      <button onclick="openDisplay()">Display</button>
    </div>
  </fieldset>

  <fieldset>
    <legend>Cash in / out</legend>
    <select id="cm_type"><option value="in">in</option><option value="out">out</option></select>
    <input id="cm_amount" type="number" value="0"/>
    <input id="cm_reason" placeholder="reason"/>
    <button onclick="cashMovement()">Record</button>
  </fieldset>

  <fieldset>
    <legend>Products</legend>
    <div id="products"></div>
  </fieldset>

  <fieldset>
    <legend>Cart</legend>
    <table id="cart"></table>
    <div class="row"><b>Total: <span id="total">0.00</span></b></div>
    <div class="row">
      <button onclick="pay('cash')">Cash</button>
      <button onclick="pay('card')">Card</button>
      <button onclick="clearCart()">Clear</button>
    </div>
  </fieldset>

  <h2>Console</h2>
  <pre id="log"></pre>

<script>
let HASH = null;
const U = (id) => document.getElementById(id);
const log = (m, cls="") => {
  const el = U("log");
  el.textContent = (cls ? "["+cls.toUpperCase()+"] " : "") + (typeof m==="string"? m: JSON.stringify(m,null,2)) + "\\n" + el.textContent;
};

async function api(method, path, body, headers={}){
  const r = await fetch(path, {method, headers:{"Content-Type":"application/json", ...headers},
                               body: body ? JSON.stringify(body) : undefined});
  const data = await r.json().catch(() => ({}));
  if(!r.ok){
    // Precondiciones (sin sesión, carrito vacío...) se muestran como alerta bloqueante
    alert(data.message || data.detail || ("HTTP " + r.status));
    throw new Error(data.detail || r.status);
  }
  return data;
}

function renderCart(c){
  const rows = c.items.map(i => `<tr><td>${i.name}</td><td>${i.price}</td>
     <td><button onclick="setQty('${i.id}', ${i.quantity-1})">-</button> ${i.quantity}
     <button onclick="setQty('${i.id}', ${i.quantity+1})">+</button></td>
     <td><button onclick="setQty('${i.id}', 0)">x</button></td></tr>`);
  U("cart").innerHTML = rows.join("");
  U("total").innerText = c.total;
}

async function refresh(){
  const cur = await api("GET", "/pos/session/current");
  HASH = cur.hash;
  U("hash").innerText = HASH || "-";
  U("session_badge").innerText = cur.session ? `${cur.session.name} (${cur.session.status})` : "no session";
  U("balance_badge").innerText = "cash: " + (cur.cash_balance ?? "-");
  renderCart(await api("GET", "/pos/cart"));
}

async function loadProducts(){
  const data = await api("GET", "/pos/products");
  U("products").innerHTML = data.products.map(p =>
    `<button onclick="addItem('${p.id}')">${p.name}<br/><span class="muted">${p.price}</span></button>`).join(" ");
}

async function openSession(){
  try{ log(await api("POST", "/pos/session/open", {opening_balance: U("opening").value||"0"}), "ok"); await refresh(); }
  catch(e){ log(e.message, "err"); }
}
async function closeSession(){
  try{ log(await api("POST", "/pos/session/close", {closing_balance: U("closing").value||"0"}), "ok"); await refresh(); }
  catch(e){ log(e.message, "err"); }
}
async function cashMovement(){
  try{
    log(await api("POST", "/pos/session/cash-movements",
        {type: U("cm_type").value, amount: U("cm_amount").value||"0", reason: U("cm_reason").value}), "ok");
    await refresh();
  }catch(e){ log(e.message, "err"); }
}
async function addItem(id){
  try{ renderCart(await api("POST", "/pos/cart/items", {product_id: id})); }catch(e){ log(e.message, "err"); }
}
async function setQty(id, q){
  try{ renderCart(await api("PUT", `/pos/cart/items/${id}`, {quantity: q})); }catch(e){ log(e.message, "err"); }
}
async function clearCart(){
  try{ renderCart(await api("DELETE", "/pos/cart")); }catch(e){ log(e.message, "err"); }
}
async function pay(method){
  try{
    const key = "ui-pay-" + Date.now() + "-" + Math.random().toString(16).slice(2);
    const r = await api("POST", "/pos/pay", {method}, {"Idempotency-Key": key});
    log(r, "ok");
    await refresh();
    const wait = Math.max(0, Date.parse(r.receipt_ready_at) - Date.now());
    setTimeout(() => log("Payment successful! Receipt printed. " + r.sale_id, "ok"), wait);
  }catch(e){ log(e.message, "err"); }
}

function openDisplay(){
  const url = HASH ? `/customer-display?hash=${HASH}` : "/customer-display";
  window.open(url, "_blank", "width=800,height=600,toolbar=no,menubar=no,scrollbars=yes,resizable=yes");
}

async function copyHash(){
  if(!HASH) return;
  try{
    await navigator.clipboard.writeText(HASH);
  }catch(e){
    // Fallback: selección + execCommand, sin avisar al usuario
    const ta = document.createElement("textarea");
    ta.value = HASH;
    document.body.appendChild(ta);
    ta.select();
    document.execCommand("copy");
    document.body.removeChild(ta);
  }
  U("copied").innerText = "copied";
  setTimeout(() => U("copied").innerText = "", 2000);
}

loadProducts();
refresh();
</script>
</body>
</html>"""


@router.get("/customer-display", response_class=HTMLResponse)
def customer_display():
    return """<!doctype html>
<html lang='en'>
<head>
<meta charset='utf-8'/>
<meta name='viewport' content='width=device-width,initial-scale=1'/>
<title>Customer Display</title>
<style>""" + _STYLE + """
 body{background:#000; color:#fff}
 .total{font-size:48px; color:#4ade80}
 .banner{background:#7f1d1d; padding:10px; border-radius:8px}
 td,th{border-bottom:1px solid #333}
</style>
</head>
<body>
  <h1 id="company">POS</h1>
  <div class="muted">Customer Display <span id="conn" class="pill">Disconnected</span> <span id="hash_label"></span></div>
  <div id="main"></div>
  <div class="muted" id="updated"></div>

<script>
const U = (id) => document.getElementById(id);
let CTX = {company: "MulaERP", currency_symbol: "$", display_poll_seconds: 5};
let HASH = new URLSearchParams(window.location.search).get("hash");
let SEQ = 0;
let LAST_UPDATE = null;
let POLL = null;

function fmt(v){ return CTX.currency_symbol + Number(v).toFixed(2); }

function adopt(hash){
  // El hash elegido pasa a la URL del propio display
  HASH = hash;
  LAST_UPDATE = null;
  const url = new URL(window.location.href);
  if(hash){ url.searchParams.set("hash", hash); } else { url.searchParams.delete("hash"); }
  window.history.replaceState(null, "", url.toString());
  start();
}

function render(view){
  U("conn").innerText = view.connected ? "Connected" : "Disconnected";
  U("hash_label").innerText = HASH ? ("Session: " + HASH) : "";
  if(view.state === "live"){
    LAST_UPDATE = view.last_update;
    U("updated").innerText = "Last updated: " + new Date(view.last_update).toLocaleTimeString();
    if(!view.cart.length){
      U("main").innerHTML = "<h2>Welcome</h2><p>Your items will appear here</p>";
      return;
    }
    const rows = view.cart.map(i => `<tr><td>${i.name}</td><td>${fmt(i.price)} each</td>
        <td>Qty: ${i.quantity}</td><td>${fmt(Number(i.price) * i.quantity)}</td></tr>`);
    U("main").innerHTML = `<table>${rows.join("")}</table><p>Total: <span class="total">${fmt(view.total)}</span></p>`;
    return;
  }
  if(view.state === "select"){
    const items = view.sessions.map(s => `<li><button onclick="adopt('${s.hash}')">${s.name}</button>
        <span class="muted">${s.id}</span></li>`);
    U("main").innerHTML = `<h2>${view.message}</h2><ul>${items.join("") || "<li>No active sessions</li>"}</ul>`;
    return;
  }
  // not_found | ended | corrupted
  U("main").innerHTML = `<div class="banner">${view.message}</div>
      <p><button onclick="adopt(null)">Select another session</button></p>`;
}

async function readOnce(){
  const qs = LAST_UPDATE !== null ? `?last_update=${LAST_UPDATE}` : "";
  const r = await fetch(HASH ? `/display/${HASH}${qs}` : "/display/sessions");
  const data = await r.json();
  if(HASH){
    SEQ = Math.max(SEQ, data.seq || 0);
    render(data);
  }else{
    render({state: "select", message: "Select a POS session to display", sessions: data.sessions, connected: false});
  }
}

async function listen(hash){
  // Long-poll sobre el canal; el polling de 5 s es sólo respaldo
  while(HASH === hash){
    try{
      const qs = `after=${SEQ}` + (LAST_UPDATE !== null ? `&last_update=${LAST_UPDATE}` : "");
      const r = await fetch(`/display/${hash}/changes?${qs}`);
      const data = await r.json();
      if(HASH !== hash) return;
      SEQ = data.seq;
      render(data.view);
      if(data.view.state !== "live") return;
    }catch(e){
      await new Promise(res => setTimeout(res, 1000));
    }
  }
}

async function start(){
  if(POLL){ clearInterval(POLL); }
  await readOnce();
  POLL = setInterval(readOnce, CTX.display_poll_seconds * 1000);
  if(HASH){ listen(HASH); }
}

fetch("/admin/context").then(r => r.json()).then(ctx => {
  CTX = ctx;
  U("company").innerText = ctx.company + " POS";
}).finally(start);
</script>
</body>
</html>"""
